"""
Gridist - FastAPI web server
Crops an uploaded image or GIF into the six grid tiles and returns them as a ZIP.
"""

import logging
import os
import zipfile
from io import BytesIO
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, File, Form, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from . import __version__
from .cropper import crop_bytes
from .errors import BoundsError, ConfigError, DecodeError, GridistError, PaletteError
from .layout import DEFAULT_CONFIG, GridConfig

logger = logging.getLogger(__name__)

app = FastAPI(title="Gridist")

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Configuration
MAX_WORKERS = int(os.environ.get("GRIDIST_MAX_WORKERS", "0")) or None
MAX_UPLOAD_BYTES = int(os.environ.get("GRIDIST_MAX_UPLOAD_BYTES", str(20 * 1024 * 1024)))

CLIENT_ERRORS = (ConfigError, DecodeError, BoundsError, PaletteError)


def build_archive(tiles) -> bytes:
    """Pack (name, bytes) tiles into a ZIP archive."""
    output = BytesIO()
    with zipfile.ZipFile(output, "w", compression=zipfile.ZIP_STORED) as archive:
        for name, data in tiles:
            archive.writestr(name, data)
    return output.getvalue()


async def read_upload(upload: UploadFile, limit: int) -> Optional[bytes]:
    """Read an upload, or return None as soon as it is known to exceed limit bytes."""
    if upload.size is not None and upload.size > limit:
        return None
    content = await upload.read(limit + 1)
    return None if len(content) > limit else content


@app.get("/api/health")
def health_check():
    return {"status": "healthy", "version": __version__}


@app.post("/api/grid")
async def grid_endpoint(
    image: UploadFile = File(...),
    containerWidth: int = Form(DEFAULT_CONFIG.container_width),
    cutWidth: int = Form(DEFAULT_CONFIG.cut_width),
    cutHeight: int = Form(DEFAULT_CONFIG.cut_height),
    paddingTop: int = Form(DEFAULT_CONFIG.padding_top),
    paddingHorizontal: int = Form(DEFAULT_CONFIG.padding_horizontal),
    paddingBottom: int = Form(DEFAULT_CONFIG.padding_bottom),
    marginBottom: int = Form(DEFAULT_CONFIG.margin_bottom),
):
    """Split the uploaded image into six tiles and return them zipped."""
    filename = Path(image.filename or "").name
    if not filename:
        return JSONResponse(status_code=400, content={"error": "Uploaded file has no name."})

    content = await read_upload(image, MAX_UPLOAD_BYTES)
    if content is None:
        return JSONResponse(
            status_code=413,
            content={"error": f"Upload exceeds {MAX_UPLOAD_BYTES} bytes."},
        )
    if not content:
        return JSONResponse(status_code=400, content={"error": "Uploaded file is empty."})

    try:
        config = GridConfig(
            container_width=containerWidth,
            cut_width=cutWidth,
            cut_height=cutHeight,
            padding_top=paddingTop,
            padding_horizontal=paddingHorizontal,
            padding_bottom=paddingBottom,
            margin_bottom=marginBottom,
        )
        tiles = await run_in_threadpool(crop_bytes, content, filename, config, MAX_WORKERS)
    except CLIENT_ERRORS as e:
        return JSONResponse(status_code=400, content={"error": str(e)})
    except GridistError as e:
        logger.error("Error generating grid for %s: %s", filename, e)
        return JSONResponse(status_code=500, content={"error": f"Failed to generate grid: {e}"})
    except Exception as e:
        logger.exception("Unexpected error generating grid for %s", filename)
        return JSONResponse(status_code=500, content={"error": f"Failed to generate grid: {e}"})

    logger.info("Generated %d tiles for %s", len(tiles), filename)
    return Response(
        content=build_archive(tiles),
        media_type="application/zip",
        headers={"Content-Disposition": f'attachment; filename="{Path(filename).stem}.grid.zip"'},
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
