import os
import re
import time
import uuid
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from loguru import logger
from dotenv import load_dotenv
from pydantic import ValidationError as PydanticValidationError
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from errors import InvalidBody, NotFound, ServiceError
from models import users_db
from schemas import (
    ErrorEnvelope,
    ServiceInfo,
    UserCreate,
    UserEnvelope,
    UserListEnvelope,
)

# Carregamento das variáveis de ambiente
load_dotenv()

SERVICE_NAME = "usuarios-service"
SERVICE_VERSION = "1.0.0"

PORT = int(os.getenv("PORT", 3000))
HOST = os.getenv("HOST", "0.0.0.0")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE", "logs.json")

ROUTE_NOT_FOUND_MESSAGE = "Rota não encontrada"
INTERNAL_ERROR_MESSAGE = "Erro interno do servidor"

# Logging JSON (INFO, WARNING, ERROR) com rotação diária
logger.remove()
logger.add(
    sink=LOG_FILE,
    format="{time:YYYY-MM-DDTHH:mm:ss.SSSZ} | {level} | {message} | {extra}",
    level=LOG_LEVEL,
    serialize=True,
    rotation="1 day",
)

# Métricas Prometheus
REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["service", "method", "endpoint", "status"]
)
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["service", "method", "endpoint"]
)
ERROR_COUNT = Counter(
    "http_errors_total",
    "Total HTTP errors",
    ["service", "endpoint", "error_type"]
)

# Sem /docs, /redoc e /openapi.json: rotas fora da tabela respondem 404
app = FastAPI(
    title="Usuarios Service",
    version=SERVICE_VERSION,
    docs_url=None,
    redoc_url=None,
    openapi_url=None,
)
# "/usuarios/" casa com a mesma rota de "/usuarios", sem redirect
app.router.redirect_slashes = False


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorEnvelope(mensagem=message).model_dump(),
    )


def endpoint_label(request: Request) -> str:
    """Template da rota para as métricas, nunca o path cru do cliente."""
    route = request.scope.get("route")
    return getattr(route, "path", "unmatched")


# Middleware: correlation ID, logs, métricas e barreira para falhas inesperadas
@app.middleware("http")
async def log_requests(request: Request, call_next):
    trace_id = request.headers.get("X-Trace-ID", str(uuid.uuid4()))
    start_time = time.time()

    with logger.contextualize(trace_id=trace_id, service=SERVICE_NAME):
        logger.info(
            "Request: {} {}", request.method, request.url.path,
            extra={"method": request.method, "url": str(request.url), "trace_id": trace_id}
        )

        try:
            response = await call_next(request)
        except Exception:
            # Detalhes ficam no log, o cliente recebe só a mensagem genérica
            logger.exception(f"Unhandled error on {request.method} {request.url.path}")
            ERROR_COUNT.labels(service=SERVICE_NAME, endpoint=endpoint_label(request), error_type="internal").inc()
            response = error_response(500, INTERNAL_ERROR_MESSAGE)

        latency = time.time() - start_time
        endpoint = endpoint_label(request)

        REQUEST_COUNT.labels(
            service=SERVICE_NAME,
            method=request.method,
            endpoint=endpoint,
            status=response.status_code
        ).inc()
        REQUEST_LATENCY.labels(
            service=SERVICE_NAME,
            method=request.method,
            endpoint=endpoint
        ).observe(latency)

        logger.info(
            "Response status: {}", response.status_code,
            extra={"status": response.status_code, "latency": latency, "trace_id": trace_id}
        )

        response.headers["X-Trace-ID"] = trace_id
        return response


# CORS aberto para qualquer origem
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Trace-ID"],
)


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    logger.warning(f"{request.method} {request.url.path} failed: {exc.message}")
    ERROR_COUNT.labels(service=SERVICE_NAME, endpoint=endpoint_label(request), error_type=exc.error_type).inc()
    return error_response(exc.status_code, exc.message)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    # Rota inexistente ou método não suportado numa rota conhecida
    if exc.status_code in (404, 405):
        logger.warning(f"No route for {request.method} {request.url.path}")
        ERROR_COUNT.labels(service=SERVICE_NAME, endpoint=endpoint_label(request), error_type="route_not_found").inc()
        return error_response(404, ROUTE_NOT_FOUND_MESSAGE)
    return error_response(exc.status_code, str(exc.detail))


USER_ID_PATTERN = re.compile(r"\s*([+-]?\d+)", re.ASCII)


def parse_user_id(raw_id: str) -> int:
    """Lê os dígitos iniciais do id, como parseInt: "2abc" é 2, "abc" não existe."""
    match = USER_ID_PATTERN.match(raw_id)
    if match is None:
        raise NotFound()
    return int(match.group(1))


async def read_user_body(request: Request) -> UserCreate:
    """Corpo vazio conta como campos ausentes; JSON malformado ou tipos errados são 400."""
    raw = await request.body()
    if not raw.strip():
        return UserCreate()
    try:
        return UserCreate.model_validate_json(raw)
    except PydanticValidationError as exc:
        logger.warning("Invalid body on {} {}", request.method, request.url.path, extra={"errors": str(exc.errors())})
        raise InvalidBody()


@app.api_route("/metrics", methods=["GET", "HEAD"])
async def metrics():
    """Endpoint /metrics compatível com Prometheus"""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


@app.api_route("/health", methods=["GET", "HEAD"])
async def health():
    """Health check endpoint"""
    return {"status": "healthy", "service": SERVICE_NAME}


@app.api_route("/", methods=["GET", "HEAD"], response_model=ServiceInfo)
async def index():
    return ServiceInfo(
        mensagem="Bem-vindo à API Básica!",
        versao=SERVICE_VERSION,
        endpoints={
            "GET /usuarios": "Lista todos os usuários",
            "GET /usuarios/:id": "Busca usuário por ID",
            "POST /usuarios": "Cria novo usuário",
            "PUT /usuarios/:id": "Atualiza usuário existente",
            "DELETE /usuarios/:id": "Remove usuário",
        },
    )


@app.api_route("/usuarios", methods=["GET", "HEAD"], response_model=UserListEnvelope)
@app.api_route("/usuarios/", methods=["GET", "HEAD"], response_model=UserListEnvelope)
async def list_users():
    logger.info("Fetching all users")
    users = users_db.list_users()
    return UserListEnvelope(dados=[u.model_dump() for u in users], total=len(users))


@app.api_route("/usuarios/{user_id}", methods=["GET", "HEAD"],
               response_model=UserEnvelope, response_model_exclude_none=True)
@app.api_route("/usuarios/{user_id}/", methods=["GET", "HEAD"],
               response_model=UserEnvelope, response_model_exclude_none=True)
async def get_user(user_id: str):
    logger.info(f"Fetching user {user_id}")
    user = users_db.get_user(parse_user_id(user_id))
    return UserEnvelope(dados=user.model_dump())


@app.post("/usuarios", response_model=UserEnvelope, status_code=201)
@app.post("/usuarios/", response_model=UserEnvelope, status_code=201)
async def create_user(request: Request):
    user = await read_user_body(request)
    logger.info(f"Creating user: {user.nome}")
    new_user = users_db.create_user(user.nome, user.email)
    logger.info(f"User created with ID {new_user.id}")
    return UserEnvelope(mensagem="Usuário criado com sucesso", dados=new_user.model_dump())


@app.put("/usuarios/{user_id}", response_model=UserEnvelope)
@app.put("/usuarios/{user_id}/", response_model=UserEnvelope)
async def update_user(user_id: str, request: Request):
    logger.info(f"Updating user {user_id}")
    user_id = parse_user_id(user_id)
    # Id desconhecido é 404 antes de qualquer checagem do corpo
    users_db.get_user(user_id)
    user = await read_user_body(request)
    updated = users_db.update_user(user_id, user.nome, user.email)
    return UserEnvelope(mensagem="Usuário atualizado com sucesso", dados=updated.model_dump())


@app.delete("/usuarios/{user_id}", response_model=UserEnvelope)
@app.delete("/usuarios/{user_id}/", response_model=UserEnvelope)
async def delete_user(user_id: str):
    logger.info(f"Deleting user {user_id}")
    removed = users_db.delete_user(parse_user_id(user_id))
    logger.info(f"User {removed.id} removed")
    return UserEnvelope(mensagem="Usuário removido com sucesso", dados=removed.model_dump())


if __name__ == "__main__":
    logger.info(f"Starting Usuarios Service on {HOST}:{PORT}")
    import uvicorn
    uvicorn.run(app, host=HOST, port=PORT)
