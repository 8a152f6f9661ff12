import unittest

from fastapi.testclient import TestClient

import main as app_module
from models.schemas import NarrativeReport
from pipeline.errors import InvalidResponseError, TransportFailureError


async def _stub_generate_narrative(**kwargs):
    return NarrativeReport(
        summary=f"Stub summary for {kwargs['risk_level'].value} risk.",
        detailed="Stub detailed report.",
        recommendations=["Stub one", "Stub two", "Stub three"],
    )


RAW_DNA = (
    "# rsid\tchromosome\tposition\tgenotype\n"
    "rs1065852\t22\t42526694\tTT\n"
    "rs1799853\t10\t96702047\tCT\n"
)

VITALS = {"heart_rate": 72, "breathing_rate": 14, "is_pulse_valid": True, "is_breathing_valid": True}


class AnalyzeApiTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        # Avoid external text-service calls in test suite.
        app_module.generate_narrative = _stub_generate_narrative
        cls.client = TestClient(app_module.app)

    def _analyze_payload(self, genotypes, medications, demographics=None):
        return {
            "genetic_profile": {"cytochrome_data": genotypes},
            "medications": [
                {"name": name, "dosage": dosage, "frequency": "Once daily"} for name, dosage in medications
            ],
            "demographics": demographics or {},
            "baseline_vitals": VITALS,
        }

    def test_health(self):
        response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["status"], "healthy")
        self.assertEqual(payload["rules_version"], "1.0.0")

    def test_reference_options(self):
        payload = self.client.get("/reference/options").json()
        self.assertIn("As needed", payload["frequencies"])
        self.assertIn("Current smoker", payload["smoking_status_options"])
        self.assertIn("CYP2C19", payload["recognized_genes"])

    def test_dna_upload_builds_profile(self):
        files = {"dna_file": ("genome.txt", RAW_DNA.encode("utf-8"), "text/plain")}
        response = self.client.post("/dna/upload", files=files)
        self.assertEqual(response.status_code, 200, response.text)
        payload = response.json()
        self.assertEqual(payload["cytochrome_data"], {"CYP2D6": "TT", "CYP2C9": "CT"})
        self.assertIn("upload_date", payload)

    def test_dna_upload_rejects_garbage(self):
        files = {"dna_file": ("genome.txt", b"# only comments\n", "text/plain")}
        response = self.client.post("/dna/upload", files=files)
        self.assertEqual(response.status_code, 400)

    def test_analyze_contract_shape(self):
        body = self._analyze_payload({"CYP2D6": "TT"}, [("Codeine", "30mg")])
        response = self.client.post("/analyze", json=body)
        self.assertEqual(response.status_code, 200, response.text)
        result = response.json()

        for key in (
            "id",
            "risk_level",
            "activity_score",
            "summary",
            "detailed_report",
            "gene_interactions",
            "drug_interactions",
            "recommendations",
            "monitoring_recommendation",
            "timestamp",
        ):
            self.assertIn(key, result)
        self.assertEqual(result["risk_level"], "caution")
        self.assertEqual(result["activity_score"], 0.5)
        self.assertEqual(result["summary"], "Stub summary for caution risk.")
        self.assertEqual(len(result["recommendations"]), 3)
        self.assertEqual(result["gene_interactions"][0]["category"], "gene-drug")

    def test_golden_warfarin_aspirin_cyp2c9_variant(self):
        body = self._analyze_payload({"CYP2C9": "AT"}, [("Warfarin", "5mg"), ("Aspirin", "81mg")])
        result = self.client.post("/analyze", json=body).json()
        self.assertEqual(result["risk_level"], "caution")
        self.assertEqual(
            [f["description"] for f in result["drug_interactions"]],
            ["Warfarin + Aspirin: Increased bleeding risk"],
        )
        self.assertEqual(
            [f["description"] for f in result["gene_interactions"]],
            ["Warfarin: CYP2C9 variant - requires careful dose monitoring"],
        )

    def test_golden_many_interactions_is_danger(self):
        body = self._analyze_payload(
            {"CYP2C9": "AT", "CYP2D6": "TT"},
            [("Warfarin", "5mg"), ("Aspirin", "81mg"), ("Tramadol", "50mg")],
        )
        result = self.client.post("/analyze", json=body).json()
        self.assertEqual(result["risk_level"], "danger")
        self.assertEqual(result["monitoring_recommendation"], "Monitor vitals immediately and every 30 minutes")

    def test_golden_acetaminophen_is_safe(self):
        body = self._analyze_payload({}, [("Acetaminophen", "500mg")])
        result = self.client.post("/analyze", json=body).json()
        self.assertEqual(result["risk_level"], "safe")
        self.assertIsNone(result["monitoring_recommendation"])

    def test_missing_steps_are_rejected(self):
        body = self._analyze_payload({}, [("Acetaminophen", "500mg")])
        body["baseline_vitals"] = None
        response = self.client.post("/analyze", json=body)
        self.assertEqual(response.status_code, 422)
        self.assertIn("valid baseline vitals", response.json()["detail"])

        body = self._analyze_payload({}, [])
        response = self.client.post("/analyze", json=body)
        self.assertEqual(response.status_code, 422)

    def test_blank_medication_name_is_rejected(self):
        body = self._analyze_payload({}, [("   ", "500mg")])
        response = self.client.post("/analyze", json=body)
        self.assertEqual(response.status_code, 422)

    def test_text_service_failures_map_to_502(self):
        async def invalid_response(**kwargs):
            raise InvalidResponseError(500, "upstream exploded")

        async def transport_failure(**kwargs):
            raise TransportFailureError()

        body = self._analyze_payload({}, [("Acetaminophen", "500mg")])
        try:
            app_module.generate_narrative = invalid_response
            response = self.client.post("/analyze", json=body)
            self.assertEqual(response.status_code, 502)
            self.assertEqual(response.json()["detail"]["upstream_status"], 500)
            self.assertIn("upstream exploded", response.json()["detail"]["message"])

            app_module.generate_narrative = transport_failure
            response = self.client.post("/analyze", json=body)
            self.assertEqual(response.status_code, 502)
            self.assertIn("Network connection failed", response.json()["detail"])
        finally:
            app_module.generate_narrative = _stub_generate_narrative

    def test_report_export_roundtrip(self):
        body = self._analyze_payload({"CYP2D6": "TT"}, [("Codeine", "30mg")])
        verdict = self.client.post("/analyze", json=body).json()
        response = self.client.post("/report", json=verdict)
        self.assertEqual(response.status_code, 200, response.text)
        self.assertIn("RISK LEVEL: CAUTION", response.text)
        self.assertIn("1. Stub one", response.text)

    def test_vitals_compare(self):
        body = {
            "baseline": VITALS,
            "latest": {"heart_rate": 100, "breathing_rate": 22, "is_pulse_valid": True, "is_breathing_valid": True},
        }
        response = self.client.post("/vitals/compare", json=body)
        self.assertEqual(response.status_code, 200, response.text)
        self.assertEqual(response.json()["status"], "significant")
        self.assertTrue(response.json()["significant_change"])

        body["latest"]["is_pulse_valid"] = False
        response = self.client.post("/vitals/compare", json=body)
        self.assertEqual(response.status_code, 422)


if __name__ == "__main__":
    unittest.main()
