"""
Export renderer.

Renders a CardTemplate off-screen at an export resolution and optionally
composes it into a container of a different aspect ratio:

    pad      card at full width, unscaled, centred; blank space around it
    cover    card scaled uniformly to the container height; width overflow cropped
    stretch  card width 1:1 with the container, height scaled non-uniformly

Capture produces an ExportArtifact that share/save/download can reuse
without rendering again.
"""

from __future__ import annotations

import logging
import tempfile
import threading
from dataclasses import dataclass, field
from datetime import datetime
from io import BytesIO
from pathlib import Path
from typing import Optional, Tuple

from PIL import Image

from bands import CardSpec
from card_render import ImageLoader, render_template
from card_template import CardTemplate
from config import (
    ASPECT_EPSILON,
    BASE_ASPECT,
    CR80_SHORT_IN,
    DEFAULT_DPI,
    DEFAULT_EXPORT_WIDTH,
    EXPORT_BACKGROUND,
    MIN_EXPORT_WIDTH,
    WALLET_ASPECT,
)
from errors import CaptureFailed, PermissionDenied, SaveUnavailable, ShareUnavailable
from utils import timestamped_filename

logger = logging.getLogger(__name__)

FIT_MODES = ("pad", "cover", "stretch")
FORMATS = {
    "jpg": ("JPEG", "image/jpeg"),
    "png": ("PNG", "image/png"),
}


@dataclass
class ExportRequest:
    width_px: Optional[int] = None
    width_in: Optional[float] = None
    dpi: Optional[float] = None
    fit_mode: str = "pad"
    target_aspect: Optional[float] = None
    pad_to_wallet: bool = False
    fmt: str = "jpg"
    quality: float = 1.0
    background: Tuple[int, int, int] = EXPORT_BACKGROUND

    def __post_init__(self):
        self.fmt = (self.fmt or "jpg").lower()
        if self.fmt == "jpeg":
            self.fmt = "jpg"
        if self.fmt not in FORMATS:
            raise ValueError(f"Unsupported export format {self.fmt!r}; expected one of {sorted(FORMATS)}")
        if self.fit_mode not in FIT_MODES:
            raise ValueError(f"fit_mode must be one of {FIT_MODES}, got {self.fit_mode!r}")
        if not 0.0 <= self.quality <= 1.0:
            raise ValueError(f"quality must be within 0..1, got {self.quality}")

    @classmethod
    def from_spec(cls, spec: CardSpec, **overrides) -> "ExportRequest":
        """Request matching a card spec: physical width x dpi when a dpi is set, else its pixel width."""
        width_in, _ = spec.physical_size()
        kwargs = dict(
            width_px=spec.width_px,
            width_in=width_in if spec.dpi else None,
            dpi=spec.dpi,
            fit_mode=spec.fit_mode,
            target_aspect=spec.target_aspect,
            pad_to_wallet=spec.pad_to_wallet,
        )
        kwargs.update(overrides)
        return cls(**kwargs)

    @property
    def mime_type(self) -> str:
        return FORMATS[self.fmt][1]


@dataclass
class ExportGeometry:
    """
    Canvas and inner-card sizes for one export.

    inner_width/inner_height is the size the card is rendered at; scale_x and
    scale_y are applied after that (only stretch differs from 1:1 there, cover
    bakes its uniform scale into the inner size).
    """

    width: int
    height: int
    inner_width: int
    inner_height: int
    offset_x: int = 0
    offset_y: int = 0
    scale_x: float = 1.0
    scale_y: float = 1.0
    padded: bool = False
    fit_mode: str = "pad"
    base_aspect: float = BASE_ASPECT
    target_aspect: float = BASE_ASPECT


def effective_export_width(request: ExportRequest) -> int:
    if request.width_in and request.dpi:
        return max(int(round(request.width_in * request.dpi)), MIN_EXPORT_WIDTH)
    if request.width_px and request.width_px > 0:
        return int(request.width_px)
    return DEFAULT_EXPORT_WIDTH


def resolve_export_geometry(request: ExportRequest, base_aspect: float = BASE_ASPECT, height_in: Optional[float] = None) -> ExportGeometry:
    """
    Work out the export canvas and where the card goes inside it.

    Args:
        request: Export options
        base_aspect: Native height / width of the card design
        height_in: Physical card height; with a dpi request the unpadded
            height is round(height_in x dpi) instead of width x aspect
    """
    width = effective_export_width(request)
    target = WALLET_ASPECT if request.pad_to_wallet else (request.target_aspect or base_aspect)
    padded = request.pad_to_wallet or (
        request.target_aspect is not None and abs(request.target_aspect - base_aspect) > ASPECT_EPSILON
    )
    inner_h = int(round(width * base_aspect))

    if not padded:
        if height_in and request.width_in and request.dpi:
            height = int(round(height_in * request.dpi))
        else:
            height = inner_h
        return ExportGeometry(width, height, width, height, fit_mode=request.fit_mode, base_aspect=base_aspect, target_aspect=base_aspect)

    height = int(round(width * target))
    common = dict(padded=True, fit_mode=request.fit_mode, base_aspect=base_aspect, target_aspect=target)
    if request.fit_mode == "cover":
        scale = height / inner_h
        scaled_w = int(round(width * scale))
        scaled_h = int(round(inner_h * scale))
        return ExportGeometry(
            width,
            height,
            scaled_w,
            scaled_h,
            offset_x=(width - scaled_w) // 2,
            offset_y=(height - scaled_h) // 2,
            scale_x=scale,
            scale_y=scale,
            **common,
        )
    if request.fit_mode == "stretch":
        return ExportGeometry(width, height, width, inner_h, scale_x=1.0, scale_y=height / inner_h, **common)
    return ExportGeometry(width, height, width, inner_h, offset_y=(height - inner_h) // 2, **common)


@dataclass
class ExportArtifact:
    """Encoded export image. Reusable by share, save and download."""

    data: bytes
    fmt: str
    width: int
    height: int
    geometry: ExportGeometry
    dpi: Optional[float] = None
    created_at: datetime = field(default_factory=datetime.now)
    path: Optional[Path] = None

    @property
    def mime_type(self) -> str:
        return FORMATS[self.fmt][1]

    @property
    def extension(self) -> str:
        return self.fmt

    def image(self) -> Image.Image:
        return Image.open(BytesIO(self.data))

    def save(self, path) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "wb") as f:
            f.write(self.data)
        return path

    def to_pdf_bytes(self, width_in: Optional[float] = None, height_in: Optional[float] = None) -> bytes:
        """
        One-page PDF at the card's physical size (no filesystem writes).

        Page size defaults to pixels / dpi (DEFAULT_DPI when unknown).
        """
        from reportlab.lib.utils import ImageReader
        from reportlab.pdfgen import canvas

        dpi = self.dpi or DEFAULT_DPI
        page_w = (width_in or self.width / dpi) * 72.0
        page_h = (height_in or self.height / dpi) * 72.0
        img = self.image().convert("RGB")
        buf = BytesIO()
        c = canvas.Canvas(buf, pagesize=(page_w, page_h))
        c.drawImage(ImageReader(img), 0, 0, width=page_w, height=page_h)
        c.showPage()
        c.save()
        return buf.getvalue()


def _encode(image: Image.Image, request: ExportRequest) -> bytes:
    pil_format = FORMATS[request.fmt][0]
    buf = BytesIO()
    params = {}
    if request.dpi:
        params["dpi"] = (request.dpi, request.dpi)
    if pil_format == "JPEG":
        params["quality"] = max(1, min(100, int(round(request.quality * 100))))
        image.convert("RGB").save(buf, pil_format, **params)
    else:
        image.save(buf, pil_format, **params)
    return buf.getvalue()


class ExportRenderer:
    """
    Off-screen renderer for one template instance.

    Captures are serialised: a second capture waits until the first has
    finished composing and encoding.
    """

    def __init__(self, template: CardTemplate, loader: Optional[ImageLoader] = None):
        self.template = template
        self.loader = loader
        self._lock = threading.Lock()

    def geometry(self, request: ExportRequest) -> ExportGeometry:
        width_in, height_in = self.template.spec.physical_size()
        same_width = request.width_in is not None and abs(request.width_in - width_in) < 1e-9
        return resolve_export_geometry(request, self.template.base_aspect, height_in if same_width else None)

    def compose(self, request: ExportRequest) -> Tuple[Image.Image, ExportGeometry]:
        """Render the card and place it on the export canvas."""
        g = self.geometry(request)
        if not g.padded:
            return render_template(self.template, g.width, g.height, self.loader), g

        canvas = Image.new("RGB", (g.width, g.height), request.background)
        card = render_template(self.template, g.inner_width, g.inner_height, self.loader)
        if g.fit_mode == "stretch":
            card = card.resize((g.width, g.height), Image.Resampling.LANCZOS)
        canvas.paste(card, (g.offset_x, g.offset_y))
        return canvas, g

    def capture(self, request: Optional[ExportRequest] = None) -> ExportArtifact:
        """Render and encode one export. Raises CaptureFailed; never retries on its own."""
        request = request or ExportRequest.from_spec(self.template.spec)
        with self._lock:
            try:
                image, g = self.compose(request)
                data = _encode(image, request)
            except Exception as e:
                logger.warning("Capture failed: %s", e)
                raise CaptureFailed(f"Capture failed: {e}") from e
        logger.info("Captured %dx%d %s (%s, %d bytes)", g.width, g.height, request.fmt, g.fit_mode if g.padded else "native", len(data))
        return ExportArtifact(data=data, fmt=request.fmt, width=g.width, height=g.height, geometry=g, dpi=request.dpi)


class ShareTarget:
    """Platform share sheet. Subclasses override both methods."""

    def is_available(self) -> bool:
        return False

    def share(self, path: Path, mime_type: str, title: str) -> None:
        raise ShareUnavailable("Sharing is not available on this platform.")


class MediaLibrary:
    """Photo library access. The base class reports the capability as absent."""

    def is_available(self) -> bool:
        return False

    def request_permission(self) -> bool:
        return False

    def save(self, path: Path) -> None:
        raise SaveUnavailable("Media library is not available on this platform.")


class FolderMediaLibrary(MediaLibrary):
    """Saves exports into a local folder (desktop stand-in for a photo library)."""

    def __init__(self, directory):
        self.directory = Path(directory)

    def is_available(self) -> bool:
        return True

    def request_permission(self) -> bool:
        self.directory.mkdir(parents=True, exist_ok=True)
        return True

    def save(self, path: Path) -> None:
        dest = self.directory / Path(path).name
        dest.write_bytes(Path(path).read_bytes())


class ExportActions:
    """
    User-facing export flows around one renderer.

    Every action takes an optional artifact; without one it reuses the last
    capture (or captures once), so a failed share can be retried as a save
    without rendering again.
    """

    def __init__(
        self,
        renderer: ExportRenderer,
        request: Optional[ExportRequest] = None,
        share_target: Optional[ShareTarget] = None,
        library: Optional[MediaLibrary] = None,
        work_dir=None,
        filename_prefix: str = "ID_Card",
    ):
        self.renderer = renderer
        self.request = request
        self.share_target = share_target or ShareTarget()
        self.library = library or MediaLibrary()
        self.work_dir = Path(work_dir) if work_dir else Path(tempfile.gettempdir())
        self.filename_prefix = filename_prefix
        self.last_artifact: Optional[ExportArtifact] = None

    def capture(self) -> ExportArtifact:
        artifact = self.renderer.capture(self.request)
        self.last_artifact = artifact
        return artifact

    def _resolve(self, artifact: Optional[ExportArtifact]) -> ExportArtifact:
        if artifact is not None:
            return artifact
        if self.last_artifact is not None:
            return self.last_artifact
        return self.capture()

    def _filename(self, artifact: ExportArtifact) -> str:
        side = self.renderer.template.side.capitalize()
        return timestamped_filename(self.filename_prefix, side, artifact.extension, artifact.created_at)

    def _materialize(self, artifact: ExportArtifact) -> Path:
        if artifact.path is None or not artifact.path.exists():
            artifact.path = artifact.save(self.work_dir / self._filename(artifact))
        return artifact.path

    def download(self, directory, artifact: Optional[ExportArtifact] = None) -> Path:
        """Write the export into a directory; returns the file path."""
        artifact = self._resolve(artifact)
        path = artifact.save(Path(directory) / self._filename(artifact))
        logger.info("Saved card to %s", path)
        return path

    def share(self, artifact: Optional[ExportArtifact] = None) -> Path:
        artifact = self._resolve(artifact)
        if not self.share_target.is_available():
            raise ShareUnavailable("Your device does not support the native share sheet.")
        path = self._materialize(artifact)
        self.share_target.share(path, artifact.mime_type, "Save or Share ID Card")
        return path

    def save_to_photos(self, artifact: Optional[ExportArtifact] = None) -> str:
        """
        Save to the photo library; returns 'saved' or 'shared'.

        Falls back to share when the library is absent. PermissionDenied is
        raised separately so callers can show permission guidance.
        """
        artifact = self._resolve(artifact)
        if not self.library.is_available():
            logger.warning("Media library unavailable; falling back to share")
            try:
                self.share(artifact)
            except ShareUnavailable as e:
                raise SaveUnavailable("Saving to photos is not available and sharing failed.") from e
            return "shared"
        if not self.library.request_permission():
            raise PermissionDenied("Allow Photos/Media permission to save the image.")
        self.library.save(self._materialize(artifact))
        logger.info("Saved card to media library")
        return "saved"


def export_info(request: ExportRequest, geometry: ExportGeometry) -> str:
    """Human-readable size line, e.g. 'Wallet card (CR80): 54.0mm × 85.7mm at 600 DPI → 1275 × 2025 px'."""
    if request.pad_to_wallet:
        kind = "Wallet card (CR80)"
    elif request.target_aspect:
        kind = "Custom size"
    else:
        kind = "Base aspect"
    width_in = request.width_in or CR80_SHORT_IN
    height_in = width_in * geometry.height / geometry.width
    dpi = request.dpi or DEFAULT_DPI
    return (
        f"{kind}: {width_in * 25.4:.1f}mm × {height_in * 25.4:.1f}mm "
        f"at {dpi:g} DPI → {geometry.width} × {geometry.height} px"
    )
