#!/usr/bin/env python3
"""Tests for validate_yaml schema validation."""

from validate_yaml import load_schema, main, validate_logbook_file


class TestLoadSchema:
    """Tests for load_schema function."""

    def test_returns_dict(self):
        """Schema loads as a dict."""
        schema = load_schema()
        assert isinstance(schema, dict)

    def test_has_expected_structure(self):
        """Every logbook section is described."""
        schema = load_schema()
        properties = schema.get("properties", schema)
        for section in ("vehicles", "purposes", "trips", "auditLog", "locations", "tripTemplates"):
            assert section in properties


class TestValidateLogbookFile:
    """Tests for validate_logbook_file function."""

    def test_valid_returns_no_errors(self, tmp_path):
        """Valid logbook file returns empty error list."""
        path = tmp_path / "valid.yaml"
        path.write_text(
            """
vehicles:
  - id: 1
    make: VW
    model: Golf
    licensePlate: B AB 1234
    fuelType: Benzin
    isPrimary: true
purposes:
  - id: 1
    name: Privat
    isBusinessRelevant: false
    color: '#43A047'
trips:
  - id: 1
    date: '2025-02-01T08:15:00'
    startLocation: Berlin
    endLocation: Potsdam
    distanceKm: 35.0
    startOdometer: 1000
    endOdometer: 1035
    vehicleId: 1
auditLog: []
locations: []
""",
            encoding="utf-8",
        )
        schema = load_schema()
        assert validate_logbook_file(path, schema) == []

    def test_cancelled_trip_and_templates_are_valid(self, tmp_path):
        """Cancellation fields and the tripTemplates section pass the schema."""
        path = tmp_path / "templates.yaml"
        path.write_text(
            """
trips:
  - id: 1
    date: '2025-02-01T08:15:00'
    startLocation: Berlin
    isCancelled: true
    cancellationReason: Doppelt erfasst
tripTemplates:
  - id: 1
    name: Pendeln
    startLocation: Berlin
    endLocation: Potsdam
    distanceKm: 35.0
    route: A115
""",
            encoding="utf-8",
        )
        assert validate_logbook_file(path, load_schema()) == []

    def test_empty_logbook_is_valid(self, tmp_path):
        """Empty sections are valid."""
        path = tmp_path / "empty.yaml"
        path.write_text("vehicles: []\ntrips: []\n")
        assert validate_logbook_file(path, load_schema()) == []

    def test_missing_required_field_returns_errors(self, tmp_path):
        """Missing required trip field returns schema validation errors."""
        path = tmp_path / "invalid.yaml"
        path.write_text(
            """
trips:
  - id: 1
    date: '2025-02-01T08:15:00'
    # startLocation missing
"""
        )
        errors = validate_logbook_file(path, load_schema())
        assert any("Schema validation" in e for e in errors)
        assert any("trips.0" in e for e in errors)

    def test_unknown_key_returns_errors(self, tmp_path):
        """Unknown top-level keys are rejected."""
        path = tmp_path / "invalid.yaml"
        path.write_text("vehicles: []\ncars: []\n")
        errors = validate_logbook_file(path, load_schema())
        assert len(errors) >= 1

    def test_duplicate_ids(self, tmp_path):
        """Repeated ids within a section are reported."""
        path = tmp_path / "dup.yaml"
        path.write_text(
            """
purposes:
  - {id: 1, name: A, isBusinessRelevant: true}
  - {id: 1, name: B, isBusinessRelevant: false}
"""
        )
        errors = validate_logbook_file(path, load_schema())
        assert errors == ["Duplicate id 1 in purposes"]

    def test_invalid_yaml_returns_parse_error(self, tmp_path):
        """Invalid YAML syntax returns YAML parse error."""
        path = tmp_path / "bad.yaml"
        path.write_text("vehicles: [unclosed\n")
        errors = validate_logbook_file(path, load_schema())
        assert any("YAML" in e for e in errors)

    def test_nonexistent_file_returns_errors(self, tmp_path):
        """Nonexistent file returns error (caught by validate_logbook_file)."""
        errors = validate_logbook_file(tmp_path / "does_not_exist.yaml", load_schema())
        assert len(errors) >= 1
        assert any("Error" in e for e in errors)


class TestMain:
    """Tests for the command line entry point."""

    def test_reports_ok_and_fail(self, tmp_path, capsys):
        """Prints OK or FAIL per file and exits 1 on any failure."""
        good = tmp_path / "good.yaml"
        good.write_text("trips: []\n")
        missing = tmp_path / "missing.yaml"
        assert main([str(good), str(missing)]) == 1
        out = capsys.readouterr().out
        assert "OK: good.yaml" in out
        assert "FAIL: missing.yaml" in out
