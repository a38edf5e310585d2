"""Chat engine: product lookup, collection map, then retrieval + LLM."""

from typing import Any, Dict, List, Optional
import logging
import time

from storefront_rag.rag.catalog import (
    CollectionMap,
    ProductCatalog,
    QueryCache,
    product_price,
    product_url,
)

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = "You are a friendly shopping assistant for our store."

DEFAULT_PRODUCT_REPLY = "Sure! I found **{title}** for ${price}. Take a look here: {url}"
DEFAULT_COLLECTION_REPLY = "You can browse our {title} collection here: {url}"


class ChatRequestError(ValueError):
    """Raised when a chat request is missing required fields."""
    pass


class ChatEngine:
    """
    Answers storefront chat messages.

    Routing, first match wins:
    1. Product named in the message -> product link with price
    2. Collection keyword -> collection link
    3. Vector retrieval over indexed chunks + LLM completion
    """

    def __init__(self, catalog: ProductCatalog, collections: CollectionMap,
                 embedder, vector_store, llm,
                 store_url: str = "",
                 system_prompt: str = DEFAULT_SYSTEM_PROMPT,
                 top_k: int = 3, cache_ttl: float = 60.0,
                 max_history: int = 20,
                 product_reply: str = DEFAULT_PRODUCT_REPLY,
                 collection_reply: str = DEFAULT_COLLECTION_REPLY,
                 audit_logger=None,
                 query_cache: Optional[QueryCache] = None):
        self.catalog = catalog
        self.collections = collections
        self.embedder = embedder
        self.vector_store = vector_store
        self.llm = llm
        self.store_url = store_url
        self.system_prompt = system_prompt
        self.top_k = top_k
        self.max_history = max_history
        self.product_reply = product_reply
        self.collection_reply = collection_reply
        self.audit = audit_logger
        self.cache = query_cache or QueryCache(ttl_seconds=cache_ttl)
        self.histories: Dict[str, List[Dict[str, str]]] = {}

    def history(self, session_id: str) -> List[Dict[str, str]]:
        """Conversation for a session, starting with the system prompt."""
        if session_id not in self.histories:
            self.histories[session_id] = [{'role': 'system', 'content': self.system_prompt}]
        return self.histories[session_id]

    def reply(self, session_id: str, message: str) -> str:
        """
        Produce the assistant reply for one user message.

        Args:
            session_id: Conversation id
            message: User message

        Returns:
            Reply text

        Raises:
            ChatRequestError: If session_id or message is missing
        """
        if not session_id or not message or not message.strip():
            raise ChatRequestError("session_id and message are required")

        start = time.time()
        history = self.history(session_id)
        user_turn = {'role': 'user', 'content': message}

        route = 'product'
        product = self.catalog.find(message)
        if product is not None:
            reply = self.product_reply.format(
                title=product['title'],
                price=product_price(product) or '',
                url=product_url(self.store_url, product),
            )
        else:
            collection = self.collections.match(message)
            if collection is not None:
                route = 'collection'
                handle, title = collection
                reply = self.collection_reply.format(
                    title=title,
                    url=f"{self.store_url.rstrip('/')}/collections/{handle}",
                )
            else:
                route = 'retrieval'
                reply = self._answer_from_context(history + [user_turn], message)

        # The turn is recorded only once a reply exists
        history.append(user_turn)
        history.append({'role': 'assistant', 'content': reply})
        self._trim_history(history)

        if self.audit:
            self.audit.log_chat(
                session_id=session_id,
                message=message,
                route=route,
                execution_time_ms=(time.time() - start) * 1000,
            )
        return reply

    def retrieve(self, message: str) -> List[Dict[str, Any]]:
        """Nearest chunks for a message, cached per message text."""
        matches = self.cache.get(message)
        if matches is None:
            embedding = self.embedder.embed_single(message)
            matches = self.vector_store.query(embedding, k=self.top_k)
            self.cache.set(message, matches)
        return matches

    def _answer_from_context(self, history: List[Dict[str, str]], message: str) -> str:
        matches = self.retrieve(message)
        context = "\n\n".join(
            m['metadata'].get('chunk_text') or m.get('text') or '' for m in matches
        )
        prompt = self._build_prompt(history, context)

        result = self.llm.generate(prompt)
        if self.audit:
            self.audit.log_model_inference(
                model_name=getattr(self.llm, 'model_path', type(self.llm).__name__),
                input_tokens=self.llm.count_tokens(prompt),
                output_tokens=result.get('tokens', 0),
                inference_time_ms=result.get('time_ms', 0.0),
            )
        return result['text'].strip()

    def _build_prompt(self, history: List[Dict[str, str]], context: str) -> str:
        lines = []
        for turn in history:
            if turn['role'] == 'system':
                lines.append(turn['content'])
                lines.append('')
                lines.append(f"Relevant context:\n{context}")
                lines.append('')
            elif turn['role'] == 'user':
                lines.append(f"User: {turn['content']}")
            else:
                lines.append(f"Assistant: {turn['content']}")
        lines.append("Assistant:")
        return "\n".join(lines)

    def _trim_history(self, history: List[Dict[str, str]]):
        # Keep the system prompt plus the most recent turns
        excess = len(history) - 1 - self.max_history
        if excess > 0:
            del history[1:1 + excess]


def build_chat_engine(config_dict: Dict[str, Any], audit_logger=None,
                      catalog: Optional[ProductCatalog] = None) -> ChatEngine:
    """
    Wire a ChatEngine from configuration.

    The product catalog is loaded from Shopify when credentials are
    configured and no catalog is supplied.
    """
    from storefront_rag.llm.llama_cpp import get_llm
    from storefront_rag.loader.shopify import ShopifyFetcher
    from storefront_rag.retriever.embedder import get_embedding_manager
    from storefront_rag.retriever.vector_store import get_vector_store

    chat_cfg = config_dict.get('chat') or {}
    threshold = chat_cfg.get('fuzzy_threshold', 0.6)

    if catalog is None:
        shopify_cfg = config_dict.get('shopify') or {}
        if shopify_cfg.get('store_domain'):
            fetcher = ShopifyFetcher(
                store_domain=shopify_cfg['store_domain'],
                api_key=shopify_cfg.get('api_key', ''),
                password=shopify_cfg.get('password', ''),
                api_version=shopify_cfg.get('api_version', '2025-01'),
            )
            catalog = ProductCatalog.from_fetcher(fetcher, fuzzy_threshold=threshold)
        else:
            logger.warning("No Shopify store configured; product lookup disabled")
            catalog = ProductCatalog(fuzzy_threshold=threshold)

    vector_store = get_vector_store(config_dict.get('vector_store') or {})
    embedder = get_embedding_manager(
        config_dict.get('embedding') or {}, expected_dim=vector_store.dimension()
    )

    return ChatEngine(
        catalog=catalog,
        collections=CollectionMap(chat_cfg.get('collections')),
        embedder=embedder,
        vector_store=vector_store,
        llm=get_llm(config_dict.get('llm') or {}),
        store_url=chat_cfg.get('store_url', ''),
        system_prompt=chat_cfg.get('system_prompt', DEFAULT_SYSTEM_PROMPT),
        top_k=chat_cfg.get('top_k', 3),
        cache_ttl=chat_cfg.get('cache_ttl', 60),
        max_history=chat_cfg.get('max_history', 20),
        product_reply=chat_cfg.get('product_reply', DEFAULT_PRODUCT_REPLY),
        collection_reply=chat_cfg.get('collection_reply', DEFAULT_COLLECTION_REPLY),
        audit_logger=audit_logger,
    )
