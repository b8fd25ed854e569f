# utils/robots.py
#
# robots.txt gate consulted before each product navigation. One parsed
# file per host per run; an unreachable robots.txt allows the fetch.

import logging
import urllib.robotparser as robotparser
from typing import Dict, Optional
from urllib.parse import urlparse

import httpx

from utils import settings

logger = logging.getLogger(__name__)


class RobotsPolicy:
    def __init__(self, user_agent: Optional[str] = None, timeout: Optional[float] = None,
                 client: Optional[httpx.AsyncClient] = None):
        self.user_agent = user_agent or settings.USER_AGENT
        self.timeout = settings.ROBOTS_TIMEOUT_SECONDS if timeout is None else timeout
        self._client = client
        self._parsers: Dict[str, Optional[robotparser.RobotFileParser]] = {}

    async def _download(self, url: str) -> Optional[str]:
        if self._client is not None:
            r = await self._client.get(url)
        else:
            async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
                r = await client.get(url)
        if r.status_code >= 400 or not r.text:
            logger.debug("No usable robots.txt at %s (HTTP %s)", url, r.status_code)
            return None
        return r.text

    async def parser_for(self, scheme: str, host: str) -> Optional[robotparser.RobotFileParser]:
        if host in self._parsers:
            return self._parsers[host]
        url = f"{scheme or 'https'}://{host}/robots.txt"
        rp = None
        try:
            text = await self._download(url)
        except httpx.HTTPError as e:
            logger.warning("Could not fetch %s, allowing: %s", url, e)
            text = None
        if text:
            rp = robotparser.RobotFileParser()
            rp.parse(text.splitlines())
        self._parsers[host] = rp
        return rp

    async def allowed(self, full_url: str) -> bool:
        parsed = urlparse(full_url)
        host = parsed.hostname or ""
        if not host:
            return True
        rp = await self.parser_for(parsed.scheme, host)
        if rp is None:
            return True
        ok = rp.can_fetch(self.user_agent, full_url)
        if not ok:
            logger.info("robots.txt disallows %s for %s", full_url, self.user_agent)
        return ok
