"""
Shared builders for the test suite: synthetic drawings and parameter blobs.
"""

import json
import os

import cv2
import numpy as np


def blank_rgba(width=280, height=280):
    return np.full((height, width, 4), 255, dtype=np.uint8)


def disk_rgba(radius=12, width=280, height=280, center=None):
    img = blank_rgba(width, height)
    if center is None:
        center = (width // 2, height // 2)
    cv2.circle(img, center, radius, (0, 0, 0, 255), -1)
    return img


def make_parameter_arrays(h1=16, h2=12, seed=0):
    rng = np.random.default_rng(seed)
    return {
        "wL1": rng.normal(0, 0.1, (h1, 784)),
        "bL1": rng.normal(0, 0.1, h1),
        "wL2": rng.normal(0, 0.5, (h2, h1)),
        "bL2": rng.normal(0, 0.1, h2),
        "wL3": rng.normal(0, 0.5, (10, h2)),
        "bL3": rng.normal(0, 0.1, 10),
    }


def write_json_blob(directory, arrays, name="neural-network-parameters.json", version=None):
    payload = {key: np.asarray(value).tolist() for key, value in arrays.items()}
    if version is not None:
        payload["version"] = version
    path = os.path.join(directory, name)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(payload, f)
    return path


def intensity_centroid(image):
    """Centre of mass using pixel centres, as (cx, cy)."""
    total = image.sum()
    ys, xs = np.indices(image.shape)
    return float(((xs + 0.5) * image).sum() / total), float(((ys + 0.5) * image).sum() / total)
