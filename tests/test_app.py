from io import BytesIO

from PIL import Image

import app
from card_template import AssetRefs


class _FakeResp:
    def __init__(self, content, status_code=200):
        self.content = content
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code != 200:
            import requests

            raise requests.HTTPError(f"status {self.status_code}")


def _png_bytes(color=(0, 128, 0)):
    buf = BytesIO()
    Image.new("RGB", (20, 20), color).save(buf, format="PNG")
    return buf.getvalue()


def test_member_fields_and_assets():
    row = {"Name": "Ravi", "ID_Number": "CRC-1", "Mobile": "900", "Zone": "", "Photo": "ravi.jpg"}
    fields = app.member_fields(row)
    assert fields.get("Name") == "Ravi"
    assert fields.get("Contact No") == "900"
    assert "Zone" not in [k for k, _ in fields.items()]
    assets = app.member_assets(row, AssetRefs(logo="logo.png"))
    assert assets.photo == "ravi.jpg"
    assert assets.logo == "logo.png"
    assert assets.qr == "qr:CRC-1"


def test_asset_loader_qr_and_cache():
    loader = app.AssetLoader()
    img = loader("qr:CRC-1")
    assert img is not None
    assert img.width == img.height
    assert loader("qr:CRC-1") is img


def test_asset_loader_local_and_missing(tmp_path):
    Image.new("RGB", (10, 12), (1, 2, 3)).save(tmp_path / "logo.png")
    loader = app.AssetLoader(base_dir=tmp_path)
    assert loader("logo.png").size == (10, 12)
    assert loader("nope.png") is None
    assert loader("") is None


def test_asset_loader_http(monkeypatch):
    import requests

    monkeypatch.setattr(requests, "get", lambda url, timeout=None: _FakeResp(_png_bytes()))
    img = app.AssetLoader()("https://example.org/photo.png")
    assert img.size == (20, 20)

    monkeypatch.setattr(requests, "get", lambda url, timeout=None: _FakeResp(b"", status_code=404))
    assert app.AssetLoader()("https://example.org/missing.png") is None


def _members_csv(tmp_path):
    path = tmp_path / "members.csv"
    path.write_text(
        "Name,Designation,Cell,ID_Number,Mobile,Valid_Upto\n"
        "Ravi Kumar,Coordinator,Legal Cell,CRC-1,9000000000,31-12-2027\n"
        "Asha Rao,Member,Media Cell,CRC-2,9111111111,31-12-2027\n"
    )
    return path


def test_generate_all_cards_writes_images_and_pdfs(tmp_path, capsys):
    from bands import CardSpec

    out = tmp_path / "out"
    generator = app.IdCardGenerator(
        str(_members_csv(tmp_path)),
        str(out),
        spec=CardSpec(width_px=300),
        pdf=True,
        library_dir=str(tmp_path / "library"),
    )
    assert generator.generate_all_cards() == 2
    files = sorted(p.name for p in out.iterdir())
    assert len([f for f in files if f.endswith(".jpg")]) == 2
    assert len([f for f in files if f.endswith(".pdf")]) == 2
    assert any(f.startswith("Ravi_Kumar_CRC-1_Front_") for f in files)
    assert len(list((tmp_path / "library").iterdir())) == 2
    printed = capsys.readouterr().out
    assert "Found 2 members" in printed
    assert "Generating card 1/2: Ravi Kumar (CRC-1)" in printed


def test_main_both_sides(tmp_path):
    out = tmp_path / "out"
    app.main([str(_members_csv(tmp_path)), "-o", str(out), "--width-px", "300", "--side", "both", "--format", "png"])
    names = sorted(p.name for p in out.iterdir())
    assert len(names) == 4
    assert any("_Back_" in n for n in names)
    img = Image.open(out / names[0])
    assert img.width == 300


def test_same_name_members_do_not_overwrite_each_other(tmp_path):
    from bands import CardSpec

    path = tmp_path / "members.csv"
    path.write_text(
        "Name,ID_Number\n"
        "Ravi Kumar,CRC-1\n"
        "Ravi Kumar,CRC-2\n"
    )
    out = tmp_path / "out"
    generator = app.IdCardGenerator(str(path), str(out), spec=CardSpec(width_px=300))
    assert generator.generate_all_cards() == 2
    names = sorted(p.name for p in out.iterdir())
    assert len(names) == 2
    assert names[0].startswith("Ravi_Kumar_CRC-1_Front_")
    assert names[1].startswith("Ravi_Kumar_CRC-2_Front_")
