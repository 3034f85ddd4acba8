"""Pillow-based photo normalizer."""

import io
from dataclasses import dataclass

from PIL import Image, ImageOps
from pillow_heif import register_heif_opener

from photo_publisher.services.session import ImageNormalizer

register_heif_opener()


@dataclass
class PillowImageNormalizer(ImageNormalizer):
    """Re-encodes photos as upright, centered square JPEGs."""

    max_size: int = 2048
    quality: int = 90

    def normalize(self, data: bytes) -> bytes:
        """Apply EXIF orientation, crop to a centered square and encode as JPEG."""
        with Image.open(io.BytesIO(data)) as source:
            image = ImageOps.exif_transpose(source)
            if image.mode != "RGB":
                image = image.convert("RGB")
            side = min(image.width, image.height, self.max_size)
            square = ImageOps.fit(image, (side, side), centering=(0.5, 0.5))
        output = io.BytesIO()
        square.save(output, format="JPEG", quality=self.quality)
        return output.getvalue()
