from app.models.proof.proof import Proof, ProofComment

__all__ = ["Proof", "ProofComment"]
