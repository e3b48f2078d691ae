"""
Control de admisión previo al enrutado.

Tres reglas, en este orden:

1. shield: patrones de ataque evidentes en la ruta o la query.
2. bots: clasificación por User-Agent. Los buscadores pasan, pero se
   comprueba por DNS inverso que la IP sea realmente suya; si no, el
   resultado queda marcado como "spoofed".
3. rate limit: ventana fija por IP con un contador en Redis (INCRBY y TTL en
   una transacción, EXPIRE si la clave no tiene caducidad), así todos los
   workers comparten el mismo límite.

La primera regla que deniega decide. Si todas permiten, la decisión lleva
los resultados de cada una para que el middleware pueda mirar el spoofing.
"""

import logging
import re
import socket
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Sequence
from urllib.parse import unquote

logger = logging.getLogger(__name__)


class Conclusion(str, Enum):
    ALLOW = "ALLOW"
    DENY = "DENY"


class ReasonKind(str, Enum):
    SHIELD = "SHIELD"
    BOT = "BOT"
    RATE_LIMIT = "RATE_LIMIT"


@dataclass
class Reason:
    kind: ReasonKind
    spoofed: bool = False
    bot_name: Optional[str] = None
    retry_after: Optional[int] = None

    def is_rate_limit(self) -> bool:
        return self.kind == ReasonKind.RATE_LIMIT

    def is_bot(self) -> bool:
        return self.kind == ReasonKind.BOT

    def is_spoofed(self) -> bool:
        return self.is_bot() and self.spoofed


@dataclass
class RuleResult:
    conclusion: Conclusion
    reason: Reason


@dataclass
class Decision:
    conclusion: Conclusion
    reason: Optional[Reason] = None
    results: List[RuleResult] = field(default_factory=list)

    def is_denied(self) -> bool:
        return self.conclusion == Conclusion.DENY

    def is_allowed(self) -> bool:
        return not self.is_denied()


# --- shield ---

_ATTACK_PATTERNS = [
    re.compile(r"\.\./|\.\.\\|%2e%2e(%2f|%5c|/)", re.IGNORECASE),
    re.compile(r"<\s*script|javascript:|%3cscript", re.IGNORECASE),
    re.compile(r"\bunion\b.+\bselect\b|'\s*or\s+'?1'?\s*=\s*'?1|;\s*drop\s+table", re.IGNORECASE),
]


def looks_like_attack(target: str) -> bool:
    decoded = unquote(target)
    return any(pattern.search(target) or pattern.search(decoded) for pattern in _ATTACK_PATTERNS)


# --- bots ---

# Buscadores permitidos y los dominios a los que debe resolver su IP
SEARCH_ENGINES = {
    "googlebot": ("googlebot.com", "google.com"),
    "bingbot": ("search.msn.com",),
    "duckduckbot": ("duckduckgo.com",),
    "yandexbot": ("yandex.ru", "yandex.net", "yandex.com"),
    "baiduspider": ("baidu.com", "baidu.jp"),
    "applebot": ("applebot.apple.com",),
}

_AUTOMATED_CLIENTS = re.compile(
    r"curl|wget|python-requests|python-urllib|httpx|aiohttp|scrapy|go-http-client|"
    r"java/|okhttp|libwww|headlesschrome|phantomjs|selenium|puppeteer|"
    r"\w*bot/|\bbot\b|crawler|spider",
    re.IGNORECASE,
)


def classify_user_agent(user_agent: Optional[str]):
    """
    Devuelve (tipo, nombre): ("search_engine", "googlebot"), ("automated", "curl")
    o (None, None) si parece un navegador normal.
    Un User-Agent vacío cuenta como cliente automatizado.
    """
    if not user_agent or not user_agent.strip():
        return "automated", "missing-user-agent"

    lowered = user_agent.lower()
    for name in SEARCH_ENGINES:
        if name in lowered:
            return "search_engine", name

    match = _AUTOMATED_CLIENTS.search(user_agent)
    if match:
        return "automated", match.group(0).lower()
    return None, None


def verify_crawler_host(ip: str, domains: Sequence[str]) -> bool:
    """DNS inverso y luego directo: el host debe ser del buscador y volver a la misma IP."""
    try:
        hostname, _, _ = socket.gethostbyaddr(ip)
    except (socket.herror, socket.gaierror, OSError):
        return False

    hostname = hostname.rstrip(".").lower()
    if not any(hostname == d or hostname.endswith("." + d) for d in domains):
        return False

    try:
        _, _, addresses = socket.gethostbyname_ex(hostname)
    except (socket.herror, socket.gaierror, OSError):
        return False
    return ip in addresses


class Perimeter:
    def __init__(
        self,
        redis_client,
        max_requests: int = 10,
        window_seconds: int = 10,
        verify_crawler: Callable[[str, Sequence[str]], bool] = verify_crawler_host,
        key_prefix: str = "ratelimit",
    ):
        self.redis = redis_client
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.verify_crawler = verify_crawler
        self.key_prefix = key_prefix

    def protect(self, request, requested: int = 1) -> Decision:
        """Bloqueante (DNS, Redis): el middleware lo llama desde el threadpool."""
        client_ip = request.client.host if request.client else "unknown"
        results = [
            self._shield(request),
            self._detect_bot(request, client_ip),
            self._rate_limit(client_ip, requested),
        ]
        for result in results:
            if result.conclusion == Conclusion.DENY:
                return Decision(Conclusion.DENY, result.reason, results)
        return Decision(Conclusion.ALLOW, None, results)

    def _shield(self, request) -> RuleResult:
        target = request.url.path
        if request.url.query:
            target += "?" + request.url.query
        if looks_like_attack(target):
            logger.warning("Shield bloqueó %s", target)
            return RuleResult(Conclusion.DENY, Reason(ReasonKind.SHIELD))
        return RuleResult(Conclusion.ALLOW, Reason(ReasonKind.SHIELD))

    def _detect_bot(self, request, client_ip: str) -> RuleResult:
        kind, name = classify_user_agent(request.headers.get("user-agent"))
        if kind == "automated":
            return RuleResult(Conclusion.DENY, Reason(ReasonKind.BOT, bot_name=name))
        if kind == "search_engine":
            spoofed = not self.verify_crawler(client_ip, SEARCH_ENGINES[name])
            if spoofed:
                logger.warning("%s no verificado desde %s", name, client_ip)
            return RuleResult(Conclusion.ALLOW, Reason(ReasonKind.BOT, spoofed=spoofed, bot_name=name))
        return RuleResult(Conclusion.ALLOW, Reason(ReasonKind.BOT))

    def _rate_limit(self, client_ip: str, requested: int) -> RuleResult:
        key = f"{self.key_prefix}:{client_ip}"
        with self.redis.pipeline() as pipe:
            pipe.incrby(key, requested)
            pipe.ttl(key)
            count, ttl = pipe.execute()

        if ttl < 0:
            # primera petición de la ventana, o una clave que perdió su TTL
            self.redis.expire(key, self.window_seconds)
            ttl = self.window_seconds

        if count > self.max_requests:
            retry_after = ttl if ttl > 0 else self.window_seconds
            return RuleResult(Conclusion.DENY, Reason(ReasonKind.RATE_LIMIT, retry_after=retry_after))
        return RuleResult(Conclusion.ALLOW, Reason(ReasonKind.RATE_LIMIT))
