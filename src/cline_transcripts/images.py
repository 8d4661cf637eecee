"""Extract base64 data URI images into numbered files."""

import base64
import binascii
import re
from pathlib import Path

DATA_URI_PATTERN = re.compile(r"^data:image/(\w+);base64,(.+)$", re.DOTALL)

# Data URIs embedded in arbitrary text
INLINE_DATA_URI_PATTERN = re.compile(r"data:image/\w+;base64,[^\s]+")

IMAGES_DIR = "images"


class ImageExtractor:
    """Collects images for one export run.

    Filenames are numbered 001, 002, ... in the order images are extracted, so
    a single instance must be used for the whole run and rendering must visit
    messages in order. Nothing touches the disk until ``write()`` is called.
    """

    def __init__(self):
        self.counter = 0
        self.pending = []  # (relative path, bytes)

    def extract_data_uri(self, data_uri):
        """Queue a data URI for writing and return its relative path.

        Returns None if ``data_uri`` is not a decodable base64 image URI.
        """
        match = DATA_URI_PATTERN.match(data_uri)
        if not match:
            return None
        extension, payload = match.group(1), match.group(2)
        try:
            data = base64.b64decode(payload)
        except (binascii.Error, ValueError):
            return None
        self.counter += 1
        relative_path = f"{IMAGES_DIR}/{self.counter:03d}.{extension}"
        self.pending.append((relative_path, data))
        return relative_path

    def process_images(self, images):
        """Map image references to src values, extracting data URIs."""
        results = []
        for image in images:
            extracted = self.extract_data_uri(image)
            results.append(extracted if extracted else image)
        return results

    def extract_inline(self, text):
        """Pull data URIs out of free text.

        Returns:
            Tuple of (text with the URIs removed and stripped, list of paths).
        """
        matches = INLINE_DATA_URI_PATTERN.findall(text)
        if not matches:
            return text, []
        paths = []
        cleaned = text
        for data_uri in matches:
            extracted = self.extract_data_uri(data_uri)
            if extracted:
                paths.append(extracted)
                cleaned = cleaned.replace(data_uri, "", 1)
        return cleaned.strip(), paths

    def write(self, output_dir):
        """Write all queued images below ``output_dir/images``."""
        if not self.pending:
            return []
        images_dir = Path(output_dir) / IMAGES_DIR
        images_dir.mkdir(parents=True, exist_ok=True)
        written = []
        for relative_path, data in self.pending:
            path = Path(output_dir) / relative_path
            path.write_bytes(data)
            written.append(path)
        return written
