from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
import redis
import logging
import uvicorn

import database
from config import get_settings
from errors import register_exception_handlers
from frontend import mount_frontend
from middleware import PerimeterMiddleware, RequestLoggingMiddleware, SecurityHeadersMiddleware
from perimeter import Perimeter
from routes import router as products_router

settings = get_settings()

# Configuración de Logs
logging.basicConfig(level=settings.log_level, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")

app = FastAPI(title="Products API")

# Starlette: el último middleware añadido es el más externo.
# Orden efectivo: CORS -> cabeceras de seguridad -> log -> perímetro -> rutas
app.add_middleware(PerimeterMiddleware, requested=1)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins),
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# Conexión a Redis (perezosa: no conecta hasta el primer comando)
redis_client = redis.from_url(settings.perimeter.redis_url)
app.state.redis = redis_client
app.state.perimeter = None
if settings.perimeter.enabled:
    app.state.perimeter = Perimeter(
        redis_client,
        max_requests=settings.perimeter.rate_limit_requests,
        window_seconds=settings.perimeter.rate_limit_window,
    )
else:
    logging.warning("Control de admisión desactivado (PERIMETER_ENABLED=false)")

app.include_router(products_router)


@app.get("/health")
def health_check():
    """Estado de la base de datos y de Redis"""
    status = {}
    try:
        database.check_connection()
        status["db"] = "ok"
    except SQLAlchemyError as db_err:
        logging.error("Health check: base de datos caída: %s", db_err)
        status["db"] = "error"

    if app.state.perimeter is not None:
        try:
            app.state.redis.ping()
            status["redis"] = "ok"
        except redis.RedisError as redis_err:
            logging.error("Health check: Redis caído: %s", redis_err)
            status["redis"] = "error"

    if "error" in status.values():
        return JSONResponse(status_code=503, content={"status": "unhealthy", "services": status})
    return {"status": "healthy", "services": status}


# El catch-all del frontend va el último para no tapar la API
if settings.is_production:
    mount_frontend(app, settings.frontend_dist)


@app.on_event("startup")
def startup_event():
    logging.info("🔥 Aplicación iniciando... comprobando la base de datos")
    # Ambos pasos son fatales: sin base o sin tabla no se sirve nada
    try:
        database.check_connection()
        logging.info("Postgres connected successfully")
    except SQLAlchemyError:
        logging.critical("No se pudo conectar a la base de datos", exc_info=True)
        raise

    try:
        database.init_db()
        logging.info("Database initialized successfully")
    except SQLAlchemyError:
        logging.critical("No se pudo crear la tabla products", exc_info=True)
        raise


@app.on_event("shutdown")
def shutdown_event():
    database.dispose()
    redis_client.close()


if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=settings.port)
