"""
Receipt Image Quality Check

Runs before a receipt photo is sent for extraction, so the user can
retake a dark or blurry photo instead of waiting for an empty answer.

DESIGN DECISION: We use simple histogram heuristics rather than an
ML-based assessment because:
1. No extra API call or cost
2. Predictable behavior
3. Good enough to catch the photos the extractor cannot read

Only images are assessed; PDFs go straight to extraction.
"""

from io import BytesIO

import structlog
from PIL import Image, UnidentifiedImageError

from finance_tracker.models.ledger import ImageQuality, ImageQualityReport


logger = structlog.get_logger(__name__)

MIN_SIDE_PX = 300
LOW_SIDE_PX = 500
MAX_ASPECT_RATIO = 5
DARK_LEVEL = 50
BRIGHT_LEVEL = 200
MIN_CONTRAST_RANGE = 50


def _contrast_range(histogram: list[int], total_pixels: int) -> int:
    """Width of the gray-level band holding the middle 90% of pixels."""
    cumulative = 0
    low = None
    for level, count in enumerate(histogram):
        cumulative += count
        if low is None and cumulative >= total_pixels * 0.05:
            low = level
        if cumulative >= total_pixels * 0.95:
            return level - (low or 0)
    return 255 - (low or 0)


def _quality_for(score: float) -> ImageQuality:
    if score >= 0.7:
        return ImageQuality.GOOD
    if score >= 0.5:
        return ImageQuality.ACCEPTABLE
    if score >= 0.3:
        return ImageQuality.POOR
    return ImageQuality.UNUSABLE


def assess_image_quality(image_bytes: bytes) -> ImageQualityReport:
    """
    Score a receipt photo between 0 and 1.

    Penalties: small resolution, extreme aspect ratio, mostly dark or
    mostly washed-out pixels, and low contrast. An image that cannot be
    opened scores 0.3 (poor) and is still sent; the extractor may cope
    with formats Pillow does not read.
    """
    issues = []
    score = 1.0

    try:
        with Image.open(BytesIO(image_bytes)) as img:
            width, height = img.size
            gray = img if img.mode == "L" else img.convert("L")
            histogram = gray.histogram()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        logger.info("image_quality_unreadable", error=str(e))
        return ImageQualityReport(
            quality=ImageQuality.POOR,
            score=0.3,
            issues=["Não foi possível analisar a imagem"],
        )

    min_side = min(width, height)
    if min_side < MIN_SIDE_PX:
        issues.append("Resolução muito baixa (mínimo de 300px no menor lado)")
        score -= 0.4
    elif min_side < LOW_SIDE_PX:
        issues.append("Resolução baixa, o texto pode ficar difícil de ler")
        score -= 0.2

    if max(width, height) / max(min_side, 1) > MAX_ASPECT_RATIO:
        issues.append("Proporção incomum, a foto pode estar mal recortada")
        score -= 0.2

    total_pixels = sum(histogram) or 1
    if sum(histogram[:DARK_LEVEL]) / total_pixels > 0.7:
        issues.append("Imagem muito escura, tire a foto com mais luz")
        score -= 0.3
    if sum(histogram[BRIGHT_LEVEL:]) / total_pixels > 0.7:
        issues.append("Imagem muito clara, reduza a luz ou mude o ângulo")
        score -= 0.3

    if _contrast_range(histogram, total_pixels) < MIN_CONTRAST_RANGE:
        issues.append("Contraste muito baixo, o texto pode ficar difícil de ler")
        score -= 0.25

    score = max(0.0, min(1.0, score))
    report = ImageQualityReport(quality=_quality_for(score), score=score, issues=issues)
    logger.debug(
        "image_quality_assessed",
        width=width,
        height=height,
        quality=report.quality.value,
        score=score,
    )
    return report
