import logging
from pathlib import Path

from fastapi import FastAPI
from fastapi.responses import FileResponse

from errors import error_response

logger = logging.getLogger(__name__)


def mount_frontend(app: FastAPI, dist_dir):
    """
    Sirve el build del frontend (solo en producción).

    Cualquier GET que no haya resuelto la API devuelve el archivo pedido si
    existe dentro de dist_dir, y si no index.html (el router del cliente
    se encarga del resto). Debe registrarse después de los routers de la API.
    """
    root = Path(dist_dir).resolve()
    index = root / "index.html"
    if not index.is_file():
        logger.warning("No existe %s, el frontend responderá 404", index)

    @app.get("/{full_path:path}", include_in_schema=False)
    def serve_frontend(full_path: str):
        candidate = (root / full_path).resolve()
        if full_path and candidate.is_file() and candidate.is_relative_to(root):
            return FileResponse(candidate)
        if not index.is_file():
            return error_response(404, "Not Found")
        return FileResponse(index)

    @app.api_route("/{full_path:path}", methods=["POST", "PUT", "PATCH", "DELETE"], include_in_schema=False)
    def unknown_path(full_path: str):
        # fuera de la API solo hay GET; el resto es 404 con el mismo sobre
        return error_response(404, "Not Found")
