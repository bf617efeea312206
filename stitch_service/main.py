# stitch_service/main.py
# StitchGraph Microservice: quantized image → pattern → regions / outlines / legend
#
# Endpoints:
#   GET  /health              → health check
#   POST /region-graph        → region graph (regions, adjacency, label points, lock hash)
#   POST /vectorize           → region outlines as JSON paths or SVG
#   POST /legend              → thread legend, optionally mapped onto DMC
#   POST /match               → closest DMC threads for a hex color
#   GET  /palette/reduced     → well-spread subset of the DMC catalog

import io
import os
import logging
from typing import List, Optional

from fastapi import FastAPI, File, Form, HTTPException, Query, UploadFile
from fastapi.responses import Response
from PIL import Image, UnidentifiedImageError
from pydantic import BaseModel

from stitchgraph.color_conversion import hex_to_lab
from stitchgraph.dmc_colors import DMC_CATALOG
from stitchgraph.label_map import label_grid_from_artifact
from stitchgraph.matcher import create_reduced_dmc_palette, get_closest_dmc_colors, map_palette_to_dmc
from stitchgraph.pattern import Pattern
from stitchgraph.region_graph import build_region_graph
from stitchgraph.vectorize import VECTORIZE_DEFAULTS, VectorizeOptions, paths_to_svg, vectorize

logger = logging.getLogger("stitch_service")
logging.basicConfig(level=os.environ.get("STITCH_SERVICE_LOG_LEVEL", "INFO").upper())

app = FastAPI(title="StitchGraph Microservice", version="1.0.0")

# Largest accepted image (width * height); patterns are one stitch per pixel
MAX_PIXELS = int(os.environ.get("STITCH_SERVICE_MAX_PIXELS", "250000"))


class MatchRequest(BaseModel):
    hex: str
    metric: str = "CMC"
    excluded: List[str] = []
    count: int = 5


@app.get("/health")
def health():
    return {
        "status": "ok",
        "service": "stitch_service",
        "catalog_size": len(DMC_CATALOG),
    }


@app.post("/region-graph")
async def region_graph(
    file: UploadFile = File(...),
    fabric_hex: Optional[str] = Form(None),
    include_pixels: bool = Form(False),
):
    """
    Build the region graph of an already-quantized image.

    Args:
        file: Input image (PNG recommended, one stitch per pixel)
        fabric_hex: Color to treat as fabric, e.g. '#FFFFFF'
        include_pixels: Also return the pixel → region grid and outline segments
    """
    try:
        img = _load_image(await file.read())
        pattern = Pattern.from_image(img, fabric_hex=fabric_hex)
        artifact = build_region_graph(pattern)
        logger.info(
            f"Region graph: {pattern.width}x{pattern.height} px → "
            f"{len(artifact.regions)} regions (hash {artifact.lock_hash})"
        )
        return artifact.to_dict(include_pixels=include_pixels)

    except HTTPException:
        raise
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception("Region graph error")
        raise HTTPException(status_code=500, detail=f"Processing error: {str(e)}")


@app.post("/vectorize")
async def vectorize_image(
    file: UploadFile = File(...),
    simplify: float = Form(VECTORIZE_DEFAULTS["simplify"]),
    smooth: int = Form(VECTORIZE_DEFAULTS["smooth"]),
    fabric_hex: Optional[str] = Form(None),
    format: str = Form("json"),
):
    """
    Trace region outlines of an already-quantized image.

    Args:
        file: Input image
        simplify: Douglas-Peucker epsilon in pixels
        smooth: Corner-cutting iterations
        fabric_hex: Color to treat as fabric
        format: "json" for path data, "svg" for a filled SVG document
    """
    if format not in ("json", "svg"):
        raise HTTPException(status_code=400, detail=f"Unknown format: {format}")
    if simplify < 0 or smooth < 0:
        raise HTTPException(status_code=400, detail="simplify and smooth must be non-negative")

    try:
        img = _load_image(await file.read())
        pattern = Pattern.from_image(img, fabric_hex=fabric_hex)
        artifact = build_region_graph(pattern)

        labels, fabric_label = label_grid_from_artifact(
            artifact.pixel_region_id, artifact.width, artifact.height
        )
        paths = vectorize(
            labels,
            artifact.width,
            artifact.height,
            fabric_labels=() if fabric_label is None else (fabric_label,),
            options=VectorizeOptions(simplify=simplify, smooth=smooth),
        )
        logger.info(f"Vectorized {len(artifact.regions)} regions into {len(paths)} paths")

        if format == "svg":
            colors = {region.id: region.hex for region in artifact.regions}
            svg = paths_to_svg(paths, artifact.width, artifact.height, colors)
            return Response(content=svg, media_type="image/svg+xml")

        return {
            "width": artifact.width,
            "height": artifact.height,
            "lockHash": artifact.lock_hash,
            "paths": [p.to_dict() for p in paths],
        }

    except HTTPException:
        raise
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception("Vectorize error")
        raise HTTPException(status_code=500, detail=f"Processing error: {str(e)}")


@app.post("/legend")
async def legend(
    file: UploadFile = File(...),
    map_to_dmc: bool = Form(False),
    fabric_hex: Optional[str] = Form(None),
):
    """
    Thread legend of an already-quantized image.

    With map_to_dmc the image palette is first mapped onto DMC threads
    (value-preserving), so legend entries carry catalog codes and names.
    """
    try:
        img = _load_image(await file.read())
        pattern = Pattern.from_image(img, fabric_hex=fabric_hex)

        if map_to_dmc and pattern.raw_palette:
            mapping = map_palette_to_dmc(pattern.raw_palette)
            pattern = Pattern.from_image(img, palette_mapping=mapping, fabric_hex=fabric_hex)
            logger.info(
                f"Mapped {len(pattern.raw_palette)} colors onto "
                f"{len(mapping.mapped_palette)} DMC threads"
            )

        return {
            "width": pattern.width,
            "height": pattern.height,
            "legend": [entry.to_dict() for entry in pattern.get_legend()],
        }

    except HTTPException:
        raise
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception("Legend error")
        raise HTTPException(status_code=500, detail=f"Processing error: {str(e)}")


@app.post("/match")
def match(request: MatchRequest):
    """Closest DMC threads to a hex color, nearest first."""
    try:
        lab = hex_to_lab(request.hex)
        matches = get_closest_dmc_colors(lab, request.count, request.excluded, request.metric)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if not matches and request.count > 0:
        raise HTTPException(status_code=400, detail="No DMC threads left after exclusions")

    return {
        "hex": request.hex,
        "metric": request.metric.upper(),
        "matches": [
            {"code": dmc.code, "name": dmc.name, "hex": dmc.hex, "distance": round(distance, 4)}
            for dmc, distance in matches
        ],
    }


@app.get("/palette/reduced")
def reduced_palette(count: int = Query(24, ge=1)):
    threads = create_reduced_dmc_palette(count)
    return {
        "count": len(threads),
        "threads": [{"code": dmc.code, "name": dmc.name, "hex": dmc.hex} for dmc in threads],
    }


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _load_image(raw: bytes) -> Image.Image:
    """Decode uploaded bytes to RGBA, enforcing the pixel cap."""
    try:
        img = Image.open(io.BytesIO(raw))
        img.load()
    except (UnidentifiedImageError, OSError):
        raise HTTPException(status_code=400, detail="Could not read image file")

    if img.width * img.height > MAX_PIXELS:
        raise HTTPException(
            status_code=413,
            detail=f"Image is {img.width}x{img.height} px; limit is {MAX_PIXELS} pixels",
        )
    return img.convert("RGBA")
