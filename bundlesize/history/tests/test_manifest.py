import json

from bundlesize.history.manifest import build_manifest
from bundlesize.storage.repository import object_url


def test_manifest_lists_dataset_uri():
    manifest = json.loads(build_manifest(["https://bucket.s3-us-west-2.amazonaws.com/p/log.csv"]).to_bytes())
    assert manifest == {"fileLocations": [{"URIs": ["https://bucket.s3-us-west-2.amazonaws.com/p/log.csv"]}]}


def test_csv_manifest_has_no_upload_settings():
    manifest = build_manifest([object_url("bundle-stats", "us-west-2", "myproject/log.csv")], "csv")
    assert manifest.fileLocations[0].URIs == ["https://bundle-stats.s3-us-west-2.amazonaws.com/myproject/log.csv"]
    assert manifest.globalUploadSettings is None


def test_json_datasets_declare_upload_format():
    manifest = json.loads(build_manifest([object_url("b", "eu-west-1", "p/log.json")], "json").to_bytes())
    assert manifest["globalUploadSettings"]["format"] == "JSON"
    assert manifest["globalUploadSettings"]["containsHeader"] is False
