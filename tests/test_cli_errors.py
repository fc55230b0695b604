"""Tests for CLI commands and error paths."""

import json
import os
import subprocess
import sys
from datetime import timedelta

from pkg_ops.models import BUCKETS_RESOURCE_TYPE, PlatformBucket, PlatformLabel, PlatformLabelMapping
from pkg_ops.state import PlatformState, write_state

PACKAGE_YAML = """\
kind: Package
meta:
  pkgName: pkg
spec:
  resources:
    - kind: Label
      name: label_1
      color: "#eee"
    - kind: Bucket
      name: bucket_1
      retention_period: 1h
      description: desc
      associations:
        - kind: Label
          name: label_1
"""


def run_cli(*args):
    """Run pkg-ops CLI as a subprocess and return (returncode, stdout, stderr)."""
    env = {k: v for k, v in os.environ.items() if not k.startswith("INFLUX_")}
    result = subprocess.run(
        [sys.executable, "-m", "pkg_ops.cli", *args],
        capture_output=True, text=True, timeout=30, env=env,
    )
    return result.returncode, result.stdout, result.stderr


def _write_package(tmp_path, text=PACKAGE_YAML):
    path = tmp_path / "pkg.yml"
    path.write_text(text)
    return str(path)


def _write_state(tmp_path, matching=False):
    state = PlatformState(org_id=1)
    if matching:
        state.buckets["bucket_1"] = PlatformBucket(id=42, name="bucket_1", org_id=1,
                                                   description="desc", retention_period=timedelta(hours=1))
        state.labels["label_1"] = PlatformLabel(id=7, name="label_1", org_id=1,
                                                properties={"color": "#eee", "description": ""})
        state.label_mappings.add(PlatformLabelMapping(7, BUCKETS_RESOURCE_TYPE, 42))
    path = str(tmp_path / "state.json")
    write_state(state, path)
    return path


class TestDiffCommand:
    # Tests that diff exits 2 when the package would create resources.
    def test_diff_with_changes_exits_2(self, tmp_path):
        rc, out, err = run_cli(
            "diff", "--package", _write_package(tmp_path),
            "--state-file", _write_state(tmp_path),
        )
        assert rc == 2
        assert "3 to create" in out

    # Tests that diff exits 0 when platform state already matches.
    def test_diff_no_changes_exits_0(self, tmp_path):
        rc, out, err = run_cli(
            "diff", "--package", _write_package(tmp_path),
            "--state-file", _write_state(tmp_path, matching=True),
        )
        assert rc == 0, err
        assert "No changes." in out

    # Tests that --json prints a parseable diff.
    def test_diff_json(self, tmp_path):
        rc, out, err = run_cli(
            "diff", "--package", _write_package(tmp_path),
            "--state-file", _write_state(tmp_path, matching=True), "--json",
        )
        assert rc == 0, err
        data = json.loads(out)
        assert data["buckets"][0]["id"] == "000000000000002a"
        assert data["labelMappings"][0]["isNew"] is False

    # Tests that a missing snapshot file exits 1.
    def test_missing_state_file_exits_1(self, tmp_path):
        rc, out, err = run_cli(
            "diff", "--package", _write_package(tmp_path),
            "--state-file", str(tmp_path / "nope.json"),
        )
        assert rc == 1
        assert "State file not found" in err

    # Tests that a snapshot that is not valid JSON exits 1 with a clean error.
    def test_malformed_state_file_exits_1(self, tmp_path):
        state_path = tmp_path / "state.json"
        state_path.write_text("not json")
        rc, out, err = run_cli(
            "diff", "--package", _write_package(tmp_path),
            "--state-file", str(state_path),
        )
        assert rc == 1
        assert "Error: Malformed state file" in err
        assert "Traceback" not in err

    # Tests that a snapshot with a bad id exits 1 with a clean error.
    def test_bad_id_in_state_file_exits_1(self, tmp_path):
        state_path = tmp_path / "state.json"
        state_path.write_text(json.dumps({"version": 1, "org_id": "zz"}))
        rc, out, err = run_cli(
            "diff", "--package", _write_package(tmp_path),
            "--state-file", str(state_path),
        )
        assert rc == 1
        assert "invalid id" in err
        assert "Traceback" not in err

    # Tests that a live diff without a token exits 1.
    def test_missing_token_exits_1(self, tmp_path):
        rc, out, err = run_cli("diff", "--package", _write_package(tmp_path))
        assert rc == 1
        assert "--token" in err

    # Tests that a package referencing an undefined label exits 1.
    def test_bad_package_exits_1(self, tmp_path):
        bad = PACKAGE_YAML.replace("name: label_1\n      color", "name: other\n      color")
        rc, out, err = run_cli(
            "diff", "--package", _write_package(tmp_path, bad),
            "--state-file", _write_state(tmp_path),
        )
        assert rc == 1
        assert "undefined label" in err


class TestSummaryCommand:
    # Tests that summary prints the resolved package as JSON.
    def test_summary_json(self, tmp_path):
        rc, out, err = run_cli(
            "summary", "--package", _write_package(tmp_path),
            "--state-file", _write_state(tmp_path, matching=True), "--json",
        )
        assert rc == 0, err
        data = json.loads(out)
        assert data["buckets"][0]["associations"][0]["name"] == "label_1"
        assert data["labelMappings"][0]["exists"] is True

    # Tests that summary text output lists new resources.
    def test_summary_text(self, tmp_path):
        rc, out, err = run_cli(
            "summary", "--package", _write_package(tmp_path),
            "--state-file", _write_state(tmp_path),
        )
        assert rc == 0, err
        assert 'bucket "bucket_1"  id=0000000000000000' in out
        assert "(new)" in out


class TestFetchCommand:
    # Tests that fetch requires connection arguments.
    def test_fetch_missing_args_exits_1(self, tmp_path):
        rc, out, err = run_cli("fetch", "--out", str(tmp_path / "s.json"))
        assert rc == 1
        assert "--token" in err and "--org-id" in err

    # Tests that a malformed org id is rejected.
    def test_fetch_bad_org_id_exits_1(self, tmp_path):
        rc, out, err = run_cli("fetch", "--out", str(tmp_path / "s.json"),
                               "--token", "t", "--org-id", "nothex")
        assert rc == 1
        assert "--org-id" in err
