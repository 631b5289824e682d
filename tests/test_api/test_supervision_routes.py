"""
Tests des routes /api/v1/supervision.
"""

BASE_URL = "/api/v1/supervision"


class TestSupervisionRoutes:

    def test_reserved_to_staff(self, apprentice_client, contract):
        for path in ("inactivity", "health", "workflow", "kpis", "export/non-compliant"):
            assert apprentice_client.get(f"{BASE_URL}/{path}").status_code == 403

    def test_inactivity(self, admin_client, contract, apprentice):
        response = admin_client.get(f"{BASE_URL}/inactivity")

        assert response.status_code == 200
        [row] = response.json()
        assert row["user_id"] == apprentice.id
        assert row["days_inactive"] == -1
        assert row["status"] == "DANGER"

    def test_health_and_kpis(self, formateur_client, contract):
        health = formateur_client.get(f"{BASE_URL}/health")
        kpis = formateur_client.get(f"{BASE_URL}/kpis")

        assert health.status_code == 200
        assert health.json()[0]["contract_id"] == contract.id
        assert kpis.status_code == 200
        assert kpis.json()["active_apprentices"] == 1

    def test_workflow(self, admin_client, contract):
        [row] = admin_client.get(f"{BASE_URL}/workflow").json()
        assert row["blocked_at"] == 1

    def test_export_csv(self, admin_client, contract):
        response = admin_client.get(f"{BASE_URL}/export/non-compliant")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert "dossiers_non_conformes.csv" in response.headers["content-disposition"]
        assert response.text.splitlines()[0] == "Apprenti;Score de Sante;Status;Anomalies"
