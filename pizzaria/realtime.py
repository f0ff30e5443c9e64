"""
Canais de tempo real (WebSocket) por feed: painel de pedidos, pedido único e entregas
"""

import asyncio
import logging
from datetime import datetime
from typing import Awaitable, Callable, Dict, List, Optional, Set

from fastapi import WebSocket

from pizzaria.config import REALTIME_DEBOUNCE_SECONDS

logger = logging.getLogger(__name__)

CANAL_PEDIDOS_ADMIN = "pedidos-admin"
CANAL_ENTREGAS = "entregas"


def canal_pedido(pedido_id: int) -> str:
    return f"pedido-{pedido_id}"


class Debouncer:
    """
    Agrupa rajadas de chamadas: o callback roda uma vez, `delay` segundos
    depois da última chamada de agendar().
    """

    def __init__(self, delay: float, callback: Callable[[], Awaitable[None]]):
        self.delay = delay
        self.callback = callback
        self._handle: Optional[asyncio.TimerHandle] = None
        self._tarefas: Set[asyncio.Task] = set()

    def agendar(self):
        loop = asyncio.get_running_loop()
        if self._handle is not None:
            self._handle.cancel()
        self._handle = loop.call_later(self.delay, self._disparar)

    def _disparar(self):
        self._handle = None
        # o loop só guarda referência fraca às tasks
        tarefa = asyncio.ensure_future(self.callback())
        self._tarefas.add(tarefa)
        tarefa.add_done_callback(self._tarefas.discard)

    def cancelar(self):
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    @property
    def pendente(self) -> bool:
        return self._handle is not None

    @property
    def em_execucao(self) -> int:
        return len(self._tarefas)


# WebSocket Manager
class ConnectionManager:
    def __init__(self, debounce_seconds: float = REALTIME_DEBOUNCE_SECONDS):
        self.channels: Dict[str, List[WebSocket]] = {}
        self.recarregar_admin = Debouncer(debounce_seconds, self._enviar_recarregar)

    async def connect(self, websocket: WebSocket, canal: str):
        await websocket.accept()
        self.channels.setdefault(canal, []).append(websocket)
        logger.debug(f"Conexão aberta no canal {canal} ({len(self.channels[canal])} ativas)")

    def disconnect(self, websocket: WebSocket, canal: str):
        conexoes = self.channels.get(canal, [])
        if websocket in conexoes:
            conexoes.remove(websocket)
        if not conexoes:
            self.channels.pop(canal, None)

    async def broadcast(self, canal: str, message: dict):
        for connection in list(self.channels.get(canal, [])):
            try:
                await connection.send_json(message)
            except Exception as e:
                logger.warning(f"Falha ao enviar para canal {canal}: {e}")
                self.disconnect(connection, canal)

    async def _enviar_recarregar(self):
        await self.broadcast(CANAL_PEDIDOS_ADMIN, {
            "evento": "recarregar",
            "timestamp": datetime.now().isoformat(),
        })

    async def publicar_pedido(self, evento: str, pedido: dict):
        """
        Publica a mudança no canal do pedido e no painel; o painel recebe
        também um 'recarregar' com debounce para rajadas de mudanças.
        """
        message = {"evento": evento, "pedido": pedido}
        await self.broadcast(canal_pedido(pedido["id"]), message)
        await self.broadcast(CANAL_PEDIDOS_ADMIN, message)
        self.recarregar_admin.agendar()

    async def publicar_entrega(self, evento: str, entrega: dict):
        await self.broadcast(CANAL_ENTREGAS, {"evento": evento, "entrega": entrega})


manager = ConnectionManager()
