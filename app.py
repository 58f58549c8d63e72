#!/usr/bin/env python3
"""
ID Card Generator
Renders identity cards (front and/or back) for each member from CSV or Excel
and exports them as JPG/PNG, optionally with a one-page PDF per card.
"""

from __future__ import annotations

import logging
import sys
from io import BytesIO
from pathlib import Path
from typing import Dict, List, Optional

from bands import CardSpec
from card_export import ExportActions, ExportArtifact, ExportRenderer, ExportRequest, FolderMediaLibrary, export_info
from card_template import AssetRefs, CardBranding, CardTemplate, FieldSet
from compositor import StampSpec
from errors import CardExportError
from fonts import FontBook
from utils import safe_stem

logger = logging.getLogger(__name__)

QR_PREFIX = "qr:"


class AssetLoader:
    """
    Resolve asset URIs to Pillow images.

    - local paths (relative ones against base_dir)
    - http(s) URLs via requests
    - 'qr:<data>' generates a QR code for <data>

    Results (including failures, as None) are cached per loader instance.
    """

    def __init__(self, base_dir: Optional[Path] = None, timeout_s: int = 15):
        self.base_dir = Path(base_dir) if base_dir else None
        self.timeout_s = timeout_s
        self._cache: Dict[str, Optional["Image.Image"]] = {}

    def __call__(self, uri: str):
        if not uri:
            return None
        if uri in self._cache:
            return self._cache[uri]
        img = self._load(uri)
        self._cache[uri] = img
        return img

    def _load(self, uri: str):
        from PIL import Image, UnidentifiedImageError

        if uri.startswith(QR_PREFIX):
            return self.generate_qr_code(uri[len(QR_PREFIX):])
        if uri.startswith(("http://", "https://")):
            import requests

            try:
                resp = requests.get(uri, timeout=(10, self.timeout_s))
                resp.raise_for_status()
                img = Image.open(BytesIO(resp.content))
                img.load()
                return img
            except (requests.RequestException, UnidentifiedImageError, OSError) as e:
                logger.warning("Could not fetch asset %s: %s", uri, e)
                return None
        path = Path(uri).expanduser()
        if not path.is_absolute() and self.base_dir is not None:
            path = self.base_dir / path
        try:
            img = Image.open(path)
            img.load()
            return img
        except (FileNotFoundError, UnidentifiedImageError, OSError) as e:
            logger.warning("Could not load asset %s: %s", path, e)
            return None

    @staticmethod
    def generate_qr_code(data: str):
        """
        Generate a QR code image encoding `data` (e.g. the card ID number).

        Returns:
            PIL Image of the QR code
        """
        import qrcode

        qr = qrcode.QRCode(
            version=1,
            error_correction=qrcode.constants.ERROR_CORRECT_M,
            box_size=10,
            border=2,
        )
        qr.add_data(str(data).strip())
        qr.make(fit=True)
        return qr.make_image(fill_color="black", back_color="white").convert("RGB")


def member_fields(row: dict) -> FieldSet:
    """Card field values from one loaded member row."""
    return FieldSet.from_values(
        name=row.get("Name", ""),
        designation=row.get("Designation", ""),
        cell=row.get("Cell", ""),
        id_number=row.get("ID_Number", ""),
        contact=row.get("Mobile", ""),
        valid_upto=row.get("Valid_Upto", ""),
        issue_date=row.get("Issue_Date") or None,
        zone=row.get("Zone") or None,
    )


def member_assets(row: dict, defaults: Optional[AssetRefs] = None) -> AssetRefs:
    """Per-member assets: own photo, QR of the ID number, shared logo/stamp/signature."""
    defaults = defaults or AssetRefs()
    id_number = str(row.get("ID_Number", "") or "").strip()
    return AssetRefs(
        logo=defaults.logo,
        photo=row.get("Photo") or defaults.photo,
        stamp=defaults.stamp,
        signature=defaults.signature,
        qr=f"{QR_PREFIX}{id_number}" if id_number else defaults.qr,
    )


class IdCardGenerator:
    """Generates ID card exports for every member in a data file."""

    def __init__(
        self,
        data_path: str,
        output_dir: str = "output",
        spec: Optional[CardSpec] = None,
        request: Optional[ExportRequest] = None,
        branding: Optional[CardBranding] = None,
        assets: Optional[AssetRefs] = None,
        stamp: Optional[StampSpec] = None,
        sides=("front",),
        pdf: bool = False,
        library_dir: Optional[str] = None,
    ):
        """
        Initialize the generator.

        Args:
            data_path: CSV/Excel file with member data
            output_dir: Directory to save generated cards
            spec: Physical card description (defaults to a landscape CR80 at 600 DPI)
            request: Export options (defaults to the card's native size)
            branding: Fixed card texts and colours
            assets: Logo/stamp/signature shared by all cards
            stamp: Stamp placement
            sides: 'front', 'back' or both
            pdf: Also write a one-page PDF per exported image
            library_dir: Also save each image into this folder through the media-library flow
        """
        self.data_path = data_path
        self.output_dir = Path(output_dir)
        self.spec = spec or CardSpec(dpi=600)
        self.request = request or ExportRequest.from_spec(self.spec)
        self.branding = branding or CardBranding()
        self.assets = assets or AssetRefs()
        self.stamp = stamp
        self.sides = tuple(sides)
        self.pdf = pdf
        self.library = FolderMediaLibrary(library_dir) if library_dir else None
        base_dir = Path(data_path).resolve().parent if data_path else None
        self.loader = AssetLoader(base_dir=base_dir)
        # One font book shared by every template in the run
        self.fonts = FontBook()

    def read_members(self) -> List[dict]:
        from data_loaders import load_members_dataframe

        df = load_members_dataframe(self.data_path)
        stats = df.attrs.get("load_stats", {})
        if stats.get("skipped_missing_name") or stats.get("skipped_missing_id"):
            print(
                f"Skipped {stats.get('skipped_missing_name', 0)} row(s) without a name and "
                f"{stats.get('skipped_missing_id', 0)} without an ID number"
            )
        return df.to_dict("records")

    def build_template(self, row: dict, side: str = "front") -> CardTemplate:
        return CardTemplate(
            spec=self.spec,
            fields=member_fields(row),
            assets=member_assets(row, self.assets),
            branding=self.branding,
            stamp=self.stamp,
            side=side,
            fonts=self.fonts,
        )

    def generate_card(self, row: dict, side: str = "front") -> ExportArtifact:
        """Render and encode one side of one member's card."""
        renderer = ExportRenderer(self.build_template(row, side), self.loader)
        return renderer.capture(self.request)

    def write_card(self, row: dict, side: str = "front") -> List[Path]:
        """Export one side into the output directory; returns the written files."""
        renderer = ExportRenderer(self.build_template(row, side), self.loader)
        # name alone can repeat within one second; the ID keeps files apart
        stem = safe_stem(f"{row.get('Name', '')} {row.get('ID_Number', '')}")
        actions = ExportActions(renderer, self.request, library=self.library, filename_prefix=stem)
        artifact = actions.capture()
        written = [actions.download(self.output_dir, artifact)]
        if self.pdf:
            pdf_path = written[0].with_suffix(".pdf")
            pdf_path.write_bytes(artifact.to_pdf_bytes())
            written.append(pdf_path)
        if self.library is not None:
            actions.save_to_photos(artifact)
        return written

    def generate_all_cards(self) -> int:
        """Generate cards for all members. Returns the number of members exported."""
        members = self.read_members()
        print(f"Found {len(members)} members with valid IDs")
        if members:
            geometry = ExportRenderer(self.build_template(members[0], self.sides[0]), self.loader).geometry(self.request)
            print(export_info(self.request, geometry))

        self.output_dir.mkdir(exist_ok=True, parents=True)
        done = 0
        for i, row in enumerate(members, 1):
            name = row.get("Name", "")
            print(f"Generating card {i}/{len(members)}: {name} ({row.get('ID_Number', '')})")
            try:
                for side in self.sides:
                    self.write_card(row, side)
                done += 1
            except (CardExportError, OSError, ValueError) as e:
                print(f"Error generating card for {name}: {e}")
                continue

        print(f"\nCompleted! Generated {done} cards in '{self.output_dir}' directory")
        return done


def main(argv=None):
    """Main entry point."""
    import argparse

    parser = argparse.ArgumentParser(description="Generate identity cards for every member in a CSV/Excel file")
    parser.add_argument("data", help="Path to Excel (.xlsx) or CSV with member data")
    parser.add_argument("-o", "--output", default="output", help="Output directory (default: output)")
    parser.add_argument("--orientation", choices=("landscape", "portrait"), default="landscape")
    parser.add_argument("--variant", choices=("standard", "exact"), default="standard", help="'exact' is the tall 1.42 design")
    parser.add_argument("--width-in", type=float, default=None, help="Physical card width in inches")
    parser.add_argument("--dpi", type=float, default=600, help="Export resolution (default: 600)")
    parser.add_argument("--width-px", type=int, default=None, help="Export width in pixels (overrides --dpi)")
    parser.add_argument("--wallet", action="store_true", help="Pad the export to the CR80 wallet aspect")
    parser.add_argument("--aspect", type=float, default=None, help="Custom export aspect (height / width)")
    parser.add_argument("--fit", choices=("pad", "cover", "stretch"), default="pad", help="How the card fills a different aspect")
    parser.add_argument("--format", choices=("jpg", "png"), default="jpg")
    parser.add_argument("--quality", type=float, default=1.0, help="JPEG quality 0..1 (default: 1.0)")
    parser.add_argument("--pdf", action="store_true", help="Also write a PDF per card")
    parser.add_argument("--side", choices=("front", "back", "both"), default="front")
    parser.add_argument("--logo", default=None, help="Logo image path or URL")
    parser.add_argument("--stamp", default=None, help="Stamp image path or URL")
    parser.add_argument("--signature", default=None, help="Signature image path or URL")
    parser.add_argument("--stamp-mode", choices=("overlap", "above", "below"), default="overlap")
    parser.add_argument("--library", default=None, help="Also save every card into this folder")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log layout/export details")

    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING, format="%(levelname)s %(name)s: %(message)s")

    try:
        spec = CardSpec(width_in=args.width_in, dpi=None if args.width_px else args.dpi, width_px=args.width_px,
                        orientation=args.orientation, variant=args.variant, fit_mode=args.fit,
                        target_aspect=args.aspect, pad_to_wallet=args.wallet)
        request = ExportRequest.from_spec(spec, fmt=args.format, quality=args.quality)
    except ValueError as e:
        print(f"Error: {e}")
        sys.exit(2)

    if not Path(args.data).exists():
        print(f"Error: Member data not found at {args.data}")
        sys.exit(1)

    sides = ("front", "back") if args.side == "both" else (args.side,)
    generator = IdCardGenerator(
        args.data,
        args.output,
        spec=spec,
        request=request,
        assets=AssetRefs(logo=args.logo, stamp=args.stamp, signature=args.signature),
        stamp=StampSpec(mode=args.stamp_mode),
        sides=sides,
        pdf=args.pdf,
        library_dir=args.library,
    )
    generator.generate_all_cards()


if __name__ == "__main__":
    main()
