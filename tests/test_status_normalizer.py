import pytest

from video_bridge.errors import StatusCheckError
from video_bridge.leonardo import LeonardoClient, normalize_generation, unwrap_generation

from conftest import API_URL, DummyResp


@pytest.mark.parametrize("reported", ["PENDING", "FAILED", "whatever", None])
def test_motion_video_forces_complete(reported):
    generation = {"status": reported, "generated_images": [{"motionMP4URL": "https://cdn/v.mp4", "url": "https://cdn/i.png"}]}
    status = normalize_generation(generation)
    assert status.status == "complete"
    assert status.video_url == "https://cdn/v.mp4"
    assert status.raw is generation


def test_no_assets_defaults_to_processing():
    status = normalize_generation({"id": "g"})
    assert status.status == "processing"
    assert status.video_url is None


@pytest.mark.parametrize(
    "asset, expected",
    [
        ({"motionMP4URL": "https://cdn/a.mp4", "videoUrl": "https://cdn/b.mp4"}, "https://cdn/a.mp4"),
        ({"videoUrl": "https://cdn/b.mp4", "url": "https://cdn/c.mp4"}, "https://cdn/b.mp4"),
        ({"url": "https://cdn/c.mp4?sig=1"}, "https://cdn/c.mp4?sig=1"),
        ({"url": "https://cdn/c.png"}, None),
        ({"motionMP4URL": None, "url": "https://cdn/c.jpg"}, None),
    ],
)
def test_video_url_priority(asset, expected):
    status = normalize_generation({"status": "COMPLETE", "generated_images": [asset]})
    assert status.video_url == expected


def test_image_only_complete_keeps_provider_status():
    status = normalize_generation({"status": "COMPLETE", "generated_images": [{"url": "https://cdn/i.png"}]})
    assert status.status == "complete"
    assert status.video_url is None


@pytest.mark.parametrize("reported, expected", [("PENDING", "pending"), ("FAILED", "failed"), ("IN_PROGRESS", "processing"), ("ODD", "unknown")])
def test_status_vocabulary(reported, expected):
    assert normalize_generation({"status": reported, "generated_images": []}).status == expected


def test_unwrap_nested_and_top_level():
    assert unwrap_generation({"generations_by_pk": {"id": "g"}}) == {"id": "g"}
    assert unwrap_generation({"id": "g", "status": "PENDING"}) == {"id": "g", "status": "PENDING"}


def test_client_polls_generation_endpoint(leonardo):
    client = LeonardoClient("leo-key", api_url=API_URL)
    status = client.get_generation_status("gen-svd")
    assert leonardo.calls[0]["url"] == f"{API_URL}/generations/gen-svd"
    assert leonardo.calls[0]["headers"]["Authorization"] == "Bearer leo-key"
    assert status.status == "pending"
    assert status.video_url is None


def test_client_wraps_provider_failure(leonardo):
    leonardo.status_response = DummyResp({"error": "not found"}, status_code=404)
    with pytest.raises(StatusCheckError) as exc_info:
        LeonardoClient("leo-key", api_url=API_URL).get_generation_status("missing")
    assert exc_info.value.details == {"error": "not found"}


def test_generation_id_is_escaped_into_one_path_segment(leonardo):
    LeonardoClient("leo-key", api_url=API_URL).get_generation_status("../../me?x=1")
    assert leonardo.calls[0]["url"] == f"{API_URL}/generations/..%2F..%2Fme%3Fx%3D1"


def test_null_envelope_is_unknown_generation():
    generation = unwrap_generation({"generations_by_pk": None})
    assert generation is None
    status = normalize_generation(generation)
    assert status.status == "unknown"
    assert status.video_url is None


def test_client_reports_unknown_for_missing_generation(leonardo):
    leonardo.status_response = DummyResp({"generations_by_pk": None})
    status = LeonardoClient("leo-key", api_url=API_URL).get_generation_status("gone")
    assert status.status == "unknown"
    assert status.to_response()["data"] is None
