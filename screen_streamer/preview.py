import logging

import cv2
import numpy as np


class PreviewDecoder:
    """Decodes JPEG frames into BGR images scaled to a fixed preview width."""

    def __init__(self, width=800):
        if width <= 0:
            raise ValueError("Preview width must be positive")
        self.width = width

    def decode(self, data):
        image = cv2.imdecode(np.frombuffer(data, dtype=np.uint8), cv2.IMREAD_COLOR)
        if image is None:
            logging.debug(f"Skipping undecodable frame of {len(data)} bytes")
            return None

        height, width = image.shape[:2]
        if width == self.width:
            return image
        scaled_height = max(1, round(height * self.width / width))
        # INTER_AREA for shrinking, INTER_LINEAR for enlarging
        interpolation = cv2.INTER_AREA if self.width < width else cv2.INTER_LINEAR
        return cv2.resize(image, (self.width, scaled_height), interpolation=interpolation)
