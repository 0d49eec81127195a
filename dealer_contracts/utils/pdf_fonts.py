"""Font support for ReportLab PDF generation.

Font resolution order:
1. Bundled DejaVu Sans fonts (dealer_contracts/fonts/)
2. Linux system fonts (/usr/share/fonts/)
3. Windows system fonts (C:/Windows/Fonts/)

When nothing is found the built-in Helvetica family is used, which covers the
Dutch alphabet and the euro sign.
"""

import logging
from pathlib import Path

from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont

logger = logging.getLogger(__name__)

_fonts_registered = False

_BUNDLED_FONTS_DIR = Path(__file__).resolve().parent.parent / "fonts"

# (registered_name, candidate paths); first existing path wins
_FONT_CANDIDATES = {
    "Contract": [
        _BUNDLED_FONTS_DIR / "DejaVuSans.ttf",
        Path("/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf"),
        Path("/usr/share/fonts/dejavu-sans/DejaVuSans.ttf"),
        Path("/usr/share/fonts/truetype/liberation/LiberationSans-Regular.ttf"),
        Path("C:/Windows/Fonts/arial.ttf"),
    ],
    "Contract-Bold": [
        _BUNDLED_FONTS_DIR / "DejaVuSans-Bold.ttf",
        Path("/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf"),
        Path("/usr/share/fonts/dejavu-sans/DejaVuSans-Bold.ttf"),
        Path("/usr/share/fonts/truetype/liberation/LiberationSans-Bold.ttf"),
        Path("C:/Windows/Fonts/arialbd.ttf"),
    ],
}

_registered_names = {"normal": None, "bold": None}


def register_contract_fonts() -> bool:
    """Register TrueType fonts with ReportLab. Returns False when falling back to Helvetica."""
    global _fonts_registered

    if _fonts_registered:
        return True

    for style_key, candidates in _FONT_CANDIDATES.items():
        for path in candidates:
            if not path.exists():
                continue
            try:
                pdfmetrics.registerFont(TTFont(style_key, str(path)))
            except Exception as e:
                logger.warning(f"Could not register font {style_key} from {path}: {e}")
                continue
            role = "bold" if "Bold" in style_key else "normal"
            _registered_names[role] = style_key
            break

    normal = _registered_names["normal"]
    if normal:
        bold = _registered_names["bold"] or normal
        pdfmetrics.registerFontFamily(normal, normal=normal, bold=bold, italic=normal, boldItalic=bold)
        _fonts_registered = True
        return True

    logger.info("No TrueType fonts found, using built-in Helvetica")
    return False


def get_font_name(bold: bool = False) -> str:
    """Get the registered font name for a weight."""
    register_contract_fonts()

    if bold:
        return _registered_names["bold"] or _registered_names["normal"] or "Helvetica-Bold"
    return _registered_names["normal"] or "Helvetica"
