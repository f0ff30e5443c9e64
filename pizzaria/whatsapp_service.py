"""
Envio de mensagens WhatsApp pela API configurada no painel (Evolution API)
"""
import json
import logging
from typing import Optional, Dict

import httpx

from pizzaria.config import HTTP_TIMEOUT

logger = logging.getLogger(__name__)


class WhatsAppService:
    """Cliente da API de WhatsApp a partir das credenciais salvas no painel"""

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        instance_name: str = "pizzaria",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or "").rstrip("/")
        self.api_key = api_key or ""
        self.instance_name = instance_name or "pizzaria"
        self.transport = transport

    def _get_headers(self) -> Dict[str, str]:
        """Get authentication headers"""
        return {
            "Content-Type": "application/json; charset=utf-8",
            "apikey": self.api_key
        }

    @staticmethod
    def clean_number(to_number: str) -> str:
        """Só dígitos, com DDI 55 quando vier apenas DDD + número"""
        digits = "".join(ch for ch in to_number if ch.isdigit())
        if len(digits) in (10, 11):
            digits = "55" + digits
        return digits

    async def send_text_message(self, to_number: str, message: str) -> dict:
        """
        Envia mensagem de texto.

        Args:
            to_number: telefone do cliente (com ou sem máscara)
            message: texto da mensagem

        Returns:
            JSON de resposta da API

        Raises:
            httpx.HTTPError em falha de rede ou status de erro
        """
        url = f"{self.base_url}/message/sendText/{self.instance_name}"
        payload = {
            "number": self.clean_number(to_number),
            "text": message,
            "delay": 0
        }

        # Encode payload as UTF-8 JSON to ensure proper character handling
        json_data = json.dumps(payload, ensure_ascii=False).encode("utf-8")

        async with httpx.AsyncClient(timeout=HTTP_TIMEOUT, transport=self.transport) as client:
            response = await client.post(url, content=json_data, headers=self._get_headers())
            response.raise_for_status()
            logger.info(f"WhatsApp: mensagem enviada para {payload['number']}")
            return response.json() if response.content else {}
