"""Run settings.

There is no configuration file and nothing is read from the environment.
Defaults live here and the CLI overrides individual values with
``dataclasses.replace``.
"""

from __future__ import annotations

from dataclasses import dataclass

VKDMR_STATUS_URL = "http://rpt.vkdmr.com/ipsc/_status.html"
ACMA_SEARCH_URL = (
    "https://web.acma.gov.au/rrl/register_search.search_dispatcher"
)
ACMA_LICENCE_URL = "https://web.acma.gov.au/rrl/licence_search.licence_lookup"
ACMA_SITE_URL = "https://web.acma.gov.au/rrl/site_search.site_lookup"

USER_AGENT = "DMR-Repeater-Tool/1.0 (amateur radio utility)"


@dataclass(frozen=True)
class Settings:
    """Endpoints and politeness settings for one run.

    Attributes:
        status_url: Network status page listing the repeaters.
        search_url: Register search dispatcher (POST).
        licence_url: Register licence detail page (GET, ``pLICENCE_NO``).
        site_url: Register site detail page (GET, ``pSITE_ID``).
        user_agent: Client identifier sent with every request.
        timeout: Per-request timeout in seconds.
        rate_limit_ms: Minimum spacing between requests in milliseconds.
            ``0`` disables throttling.
    """

    status_url: str = VKDMR_STATUS_URL
    search_url: str = ACMA_SEARCH_URL
    licence_url: str = ACMA_LICENCE_URL
    site_url: str = ACMA_SITE_URL
    user_agent: str = USER_AGENT
    timeout: float = 30.0
    rate_limit_ms: int = 500

    @classmethod
    def for_base_url(cls, base_url: str, **overrides) -> Settings:
        """Point every endpoint at a single host, keeping the upstream paths.

        Used to run against a local mirror or a test server.
        """
        base = base_url.rstrip("/")
        values = {
            "status_url": f"{base}/ipsc/_status.html",
            "search_url": f"{base}/rrl/register_search.search_dispatcher",
            "licence_url": f"{base}/rrl/licence_search.licence_lookup",
            "site_url": f"{base}/rrl/site_search.site_lookup",
        }
        values.update(overrides)
        return cls(**values)
