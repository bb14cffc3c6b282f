from scripts.regenerate_missing_qr import regenerate_missing
from utils import qr_service
from utils.qr_storage import public_to_fs_path


def test_missing_dynamic_images_are_rebuilt(db, api_key):
    _, key = api_key
    qr = qr_service.create_dynamic(db, key, {"targetUrl": "https://example.com", "format": "jpeg"})["qrCode"]
    path = public_to_fs_path(qr["filePath"])
    original = path.read_bytes()
    path.unlink()

    report = regenerate_missing(db, max_workers=2)
    assert report.total == 1
    assert report.regenerated == 1
    assert report.errors == []
    assert path.is_file()
    assert path.read_bytes()[:2] == original[:2] == b"\xff\xd8"

    second = regenerate_missing(db)
    assert second.skipped == 1
    assert second.regenerated == 0
