"""Configuration models.

Every tuning knob lives here with its reference default. The CLI surfaces the
commonly changed ones as options; everything else is set by constructing the
models directly.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class PageSelectors(BaseModel):
    """CSS selectors for the host page markup (WhatsApp Web, Dec 2024).

    Attributes:
        message_row: One rendered message row; carries ``data-id``.
        outgoing_class: Class marking an outgoing message.
        incoming_class: Class marking an incoming message.
        selectable_text: Sub-node holding the message text.
        selectable_text_parts: XPath for the text runs inside ``selectable_text``.
        image_with_alt: Media element whose alt text holds a caption.
        copyable_text: Copy container carrying ``data-pre-plain-text``.
        media: Any media element inside a row.
        read_more: "Read more" affordance on truncated messages.
        scroll_containers: Candidate list containers, most specific first.
        load_more_texts: Lowercase button texts of the load-older notice.
        chat_header_names: Candidates for the current chat's name.
        chat_list_row: One row in the sidebar chat list.
        chat_list_name: Name node within a sidebar row.
        chat_list_last_message: Last-message preview within a sidebar row.
        chat_list_time: Time within a sidebar row.
        chat_list_unread: Unread badge within a sidebar row.
        search_box: The sidebar search input.
        search_clear: Button that clears the sidebar search.
    """

    model_config = ConfigDict(frozen=True)

    message_row: str = "div[data-id]"
    outgoing_class: str = "message-out"
    incoming_class: str = "message-in"
    selectable_text: str = 'span[data-testid="selectable-text"]'
    selectable_text_parts: str = (
        ".//span[contains(concat(' ', normalize-space(@class), ' '), ' x1lliihq ')"
        " or not(@class)]"
    )
    image_with_alt: str = "img[alt]"
    copyable_text: str = ".copyable-text[data-pre-plain-text]"
    media: str = "img, video"
    read_more: str = 'div[role="button"].read-more-button'
    scroll_containers: tuple[str, ...] = (
        '[data-testid="conversation-panel-messages"]',
        '[role="application"]',
        "#main .copyable-area",
        "#main",
    )
    load_more_texts: tuple[str, ...] = (
        "carregar mensagens",
        "load older",
        "load messages",
    )
    chat_header_names: tuple[str, ...] = (
        'header span[dir="auto"][title]',
        "header span[title]",
        '#main header span[dir="auto"]',
        '[data-testid="conversation-header"] span',
    )
    chat_list_row: str = '#pane-side [role="listitem"]'
    chat_list_name: str = "span[title]"
    chat_list_last_message: str = '[data-testid="last-msg-status"] span[title]'
    chat_list_time: str = '[data-testid="cell-frame-primary-detail"]'
    chat_list_unread: str = '[data-testid="icon-unread-count"], span[aria-label*="unread"]'
    search_box: str = '#side div[contenteditable="true"]'
    search_clear: str = '#side button[aria-label="Cancel search"]'


class BackoffPolicy(BaseModel):
    """Exponential backoff after pagination steps that produced nothing.

    Attributes:
        base_delay: Delay after the first no-progress step, in seconds.
        growth: Multiplier applied per consecutive no-progress step.
        max_delay: Upper bound on a single delay, in seconds.
        boundary_threshold: Consecutive no-progress steps that mean the
            start of history has been reached.
    """

    model_config = ConfigDict(frozen=True)

    base_delay: float = Field(default=1.5, gt=0)
    growth: float = Field(default=1.5, ge=1)
    max_delay: float = Field(default=15.0, gt=0)
    boundary_threshold: int = Field(default=6, ge=1)

    def delay_for(self, attempt: int) -> float:
        """Delay for the n-th consecutive no-progress step (1-based)."""
        if attempt < 1:
            return self.base_delay
        return min(self.base_delay * self.growth ** (attempt - 1), self.max_delay)


class EngineConfig(BaseModel):
    """Scrape engine timing.

    Attributes:
        settle_delay: Fixed wait after activating pagination, in seconds.
        backoff: Policy for no-progress steps.
        progress_log_every: Log a progress line every N pagination steps.
    """

    model_config = ConfigDict(frozen=True)

    settle_delay: float = Field(default=1.2, ge=0)
    backoff: BackoffPolicy = Field(default_factory=BackoffPolicy)
    progress_log_every: int = Field(default=10, ge=1)


class BridgeConfig(BaseModel):
    """RPC bridge transport settings.

    The reconnect interval is fixed; it is a separate policy from the
    engine's exponential backoff.

    Attributes:
        host: Loopback host of the control process.
        port: Fixed port of the control process.
        path: WebSocket path.
        reconnect_interval: Seconds between reconnect attempts.
    """

    model_config = ConfigDict(frozen=True)

    host: str = "127.0.0.1"
    port: int = 9999
    path: str = "/"
    reconnect_interval: float = Field(default=5.0, gt=0)

    @property
    def url(self) -> str:
        return f"ws://{self.host}:{self.port}{self.path}"
