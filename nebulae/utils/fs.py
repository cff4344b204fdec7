"""Atomic filesystem operations for render outputs and YAML configs.

Provides:
    - Atomic writes: tmp file → fsync → rename (prevents partial reads)
    - Atomic PNG/raster saves through Pillow
    - YAML load/save
    - Directory creation with exist_ok semantics

Intermediate renders overwrite the output image once per pass while an image
viewer may be watching the file, so every write goes through a temporary
sibling and an atomic rename.

All paths use pathlib.Path for cross-platform compatibility.

Usage:
    from nebulae.utils import fs
    fs.atomic_save_image(pixels, "image.png")
    fs.atomic_yaml_dump(settings_dict, "configs/render.v1.yaml")
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

import numpy as np
import yaml
from PIL import Image


def ensure_dir(p: Union[str, Path]) -> Path:
    """Create directory (and parents) if it doesn't exist, return Path object."""
    p = Path(p)
    p.mkdir(parents=True, exist_ok=True)
    return p


def atomic_write_bytes(
    path: Union[str, Path],
    data: bytes,
    tmp_suffix: str = ".tmp"
) -> None:
    """Write bytes to file atomically (tmp → fsync → rename).

    Parameters
    ----------
    path : Union[str, Path]
        Target file path
    data : bytes
        Data to write
    tmp_suffix : str
        Temporary file suffix, default ".tmp"

    Raises
    ------
    RuntimeError
        If writing or renaming fails; the temporary file is removed
    """
    path = Path(path)
    ensure_dir(path.parent)

    tmp_path = path.with_suffix(path.suffix + tmp_suffix)

    try:
        with open(tmp_path, 'wb') as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        tmp_path.replace(path)
    except Exception as e:
        if tmp_path.exists():
            tmp_path.unlink()
        raise RuntimeError(f"Failed to write {path} atomically: {e}") from e


def atomic_write_text(
    path: Union[str, Path],
    text: str,
    encoding: str = "utf-8"
) -> None:
    """Write text to file atomically."""
    atomic_write_bytes(path, text.encode(encoding))


def atomic_save_image(
    img: np.ndarray,
    path: Union[str, Path],
    pil_kwargs: Optional[Dict[str, Any]] = None
) -> None:
    """Save a raster atomically (prevents partial reads).

    Parameters
    ----------
    img : np.ndarray
        (H, W, 3) or (H, W) image; non-uint8 data is clipped to [0, 255]
    path : Union[str, Path]
        Target file path (extension determines format)
    pil_kwargs : Optional[Dict[str, Any]]
        Additional kwargs for PIL.Image.save (e.g., compress_level=6)

    Raises
    ------
    ValueError
        If the array is not 2-D or (H, W, 1|3)
    RuntimeError
        If encoding or the rename fails
    """
    path = Path(path)
    pil_kwargs = pil_kwargs or {}

    img = np.asarray(img)
    if img.ndim == 3 and img.shape[2] == 1:
        img = img.squeeze(2)
    if not (img.ndim == 2 or (img.ndim == 3 and img.shape[2] == 3)):
        raise ValueError(f"Expected (H, W) or (H, W, 3) image, got shape {img.shape}")

    if img.dtype != np.uint8:
        img = np.clip(img, 0, 255).astype(np.uint8)

    pil_img = Image.fromarray(np.ascontiguousarray(img))

    ensure_dir(path.parent)
    # Keep the real extension last so Pillow can infer the format
    tmp_path = path.with_name(path.stem + ".tmp" + path.suffix)
    try:
        pil_img.save(tmp_path, **pil_kwargs)
        tmp_path.replace(path)
    except Exception as e:
        if tmp_path.exists():
            tmp_path.unlink()
        raise RuntimeError(f"Failed to save image {path} atomically: {e}") from e


def atomic_yaml_dump(obj: Any, path: Union[str, Path]) -> None:
    """Save object as YAML atomically (safe_dump, insertion order kept)."""
    atomic_write_text(path, dump_yaml(obj))


def dump_yaml(obj: Any) -> str:
    """Serialize object to a YAML string."""
    return yaml.safe_dump(
        obj,
        default_flow_style=False,
        sort_keys=False,
        allow_unicode=True
    )


def load_yaml(path: Union[str, Path]) -> Dict[str, Any]:
    """Load YAML file safely.

    Parameters
    ----------
    path : Union[str, Path]
        YAML file path

    Returns
    -------
    Dict[str, Any]
        Parsed YAML content ({} for an empty file)

    Raises
    ------
    FileNotFoundError
        If file doesn't exist
    yaml.YAMLError
        If YAML parsing fails
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"YAML file not found: {path}")

    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise yaml.YAMLError(f"Failed to parse YAML file {path}: {e}") from e
    return data if data is not None else {}
