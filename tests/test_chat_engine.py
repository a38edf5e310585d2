"""Tests for product lookup, collection map and the chat engine."""

import pytest

from storefront_rag.rag.catalog import CollectionMap, ProductCatalog, QueryCache, tokenize
from storefront_rag.rag.engine import ChatEngine, ChatRequestError, build_chat_engine


PRODUCTS = [
    {'id': 1, 'title': 'Anillo Sol Dorado', 'handle': 'anillo-sol-dorado',
     'variants': [{'price': '49.00'}]},
    {'id': 2, 'title': 'Cadena Plata Fina', 'handle': 'cadena-plata-fina',
     'variants': [{'price': '35.50'}]},
    {'id': 3, 'title': 'Aretes Luna', 'handle': 'aretes-luna', 'variants': []},
]

COLLECTIONS = {
    'anillos': {'title': 'Rings', 'keywords': ['ring', 'rings', 'anillo', 'anillos']},
    'collares': ['collar', 'necklace'],
}

MATCHES = [
    {'id': 'policy-shipping#0', 'text': 'We ship within 3 business days.',
     'metadata': {'chunk_text': 'We ship within 3 business days.', 'source': 'shopify-policy'},
     'distance': 0.1},
]


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


class TestProductCatalog:
    """Exact and fuzzy-token product matching."""

    @pytest.fixture
    def catalog(self):
        return ProductCatalog(PRODUCTS)

    def test_exact_title_match(self, catalog):
        product = catalog.find('How much is the Aretes Luna?')
        assert product['handle'] == 'aretes-luna'

    def test_exact_match_ignores_case_and_accents(self, catalog):
        product = catalog.find('¿Precio de CADENA PLATA FINA?')
        assert product['id'] == 2

    def test_fuzzy_match_with_extra_words(self, catalog):
        product = catalog.find('¿Tienen la cadena de plata fina?')
        assert product['id'] == 2

    def test_fuzzy_match_plural_forms(self, catalog):
        product = catalog.find('quiero anillos dorados')
        assert product['id'] == 1

    def test_no_match(self, catalog):
        assert catalog.find('Do you ship to Canada?') is None
        assert catalog.find('!!') is None

    def test_single_word_overlap_is_not_enough(self, catalog):
        # "plata" alone covers one of three title words
        assert catalog.find('algo de plata') is None

    def test_tokenize(self):
        assert tokenize('Añillo de Sol, ¡Dorado!') == ['anillo', 'sol', 'dorado']

    def test_refresh_from_fetcher(self):
        class Fetcher:
            def fetch_all(self, resource):
                assert resource == 'products'
                return PRODUCTS[:1] + [{'id': 9, 'title': ''}]

        catalog = ProductCatalog.from_fetcher(Fetcher())

        assert len(catalog) == 1
        assert catalog.find('Anillo Sol Dorado')['id'] == 1

    def test_refresh_without_fetcher(self, catalog):
        with pytest.raises(RuntimeError):
            catalog.refresh()


class TestCollectionMap:
    """Static keyword table."""

    def test_match_by_keyword(self):
        collections = CollectionMap(COLLECTIONS)

        assert collections.match('Do you have a necklace?') == ('collares', 'Collares')
        assert collections.match('Busco ANILLOS') == ('anillos', 'Rings')

    def test_whole_words_only(self):
        collections = CollectionMap(COLLECTIONS)
        assert collections.match('I love springs') is None


class TestQueryCache:
    """Time-to-live cache."""

    def test_expires_after_ttl(self):
        clock = FakeClock()
        cache = QueryCache(ttl_seconds=60, clock=clock)
        cache.set('hello', [1])

        clock.now += 59
        assert cache.get('hello') == [1]

        clock.now += 1
        assert cache.get('hello') is None
        assert len(cache) == 0

    def test_set_evicts_expired_entries(self):
        clock = FakeClock()
        cache = QueryCache(ttl_seconds=60, clock=clock)
        for i in range(1000):
            cache.set(f'message {i}', [i])
        assert len(cache) == 1000

        clock.now += 3600
        cache.set('latest', ['fresh'])

        assert len(cache) == 1
        assert cache.get('latest') == ['fresh']

    def test_set_keeps_live_entries(self):
        clock = FakeClock()
        cache = QueryCache(ttl_seconds=60, clock=clock)
        cache.set('old', [1])
        clock.now += 30
        cache.set('new', [2])

        assert len(cache) == 2
        assert cache.get('old') == [1]


class TestChatEngine:
    """Routing and conversation state."""

    @pytest.fixture
    def engine(self, fake_embedder, fake_store, fake_llm):
        fake_store.matches = MATCHES
        return ChatEngine(
            catalog=ProductCatalog(PRODUCTS),
            collections=CollectionMap(COLLECTIONS),
            embedder=fake_embedder,
            vector_store=fake_store,
            llm=fake_llm,
            store_url='https://shop.example/',
            system_prompt='You are the Ventura assistant.',
        )

    def test_product_route(self, engine, fake_llm):
        reply = engine.reply('s1', 'cuanto cuesta la cadena plata fina')

        assert '**Cadena Plata Fina**' in reply
        assert '$35.50' in reply
        assert 'https://shop.example/products/cadena-plata-fina' in reply
        assert fake_llm.prompts == []

    def test_collection_route(self, engine):
        reply = engine.reply('s1', 'show me your rings')

        assert reply == 'You can browse our Rings collection here: https://shop.example/collections/anillos'

    def test_retrieval_route(self, engine, fake_llm):
        reply = engine.reply('s1', 'How long does shipping take?')

        assert reply == 'We ship within 3 business days.'
        prompt = fake_llm.prompts[0]
        assert prompt.startswith('You are the Ventura assistant.')
        assert 'We ship within 3 business days.' in prompt
        assert 'User: How long does shipping take?' in prompt
        assert prompt.endswith('Assistant:')

        history = engine.history('s1')
        assert [turn['role'] for turn in history] == ['system', 'user', 'assistant']

    def test_failed_reply_leaves_history_unchanged(self, engine, fake_llm):
        class FlakyLLM(type(fake_llm)):
            def __init__(self):
                super().__init__()
                self.failures = 1

            def generate(self, prompt, max_tokens=None, temperature=None):
                if self.failures:
                    self.failures -= 1
                    raise RuntimeError("model crashed")
                return super().generate(prompt, max_tokens, temperature)

        engine.llm = FlakyLLM()

        with pytest.raises(RuntimeError):
            engine.reply('s1', 'first question')
        assert [turn['role'] for turn in engine.history('s1')] == ['system']

        engine.reply('s1', 'second question')

        prompt = engine.llm.prompts[-1]
        assert 'first question' not in prompt
        assert prompt.endswith('User: second question\nAssistant:')
        assert [turn['role'] for turn in engine.history('s1')] == ['system', 'user', 'assistant']

    def test_retrieval_is_cached_per_message(self, engine):
        engine.reply('s1', 'How long does shipping take?')
        engine.reply('s2', 'How long does shipping take?')

        assert len(engine.vector_store.queries) == 1
        assert engine.vector_store.queries[0][1] == 3

    def test_sessions_are_separate(self, engine):
        engine.reply('a', 'show me your rings')
        engine.reply('b', 'Do you have a necklace?')

        assert len(engine.history('a')) == 3
        assert engine.history('b')[1]['content'] == 'Do you have a necklace?'

    def test_history_is_trimmed(self, engine):
        engine.max_history = 2
        for _ in range(3):
            engine.reply('s1', 'show me your rings')

        history = engine.history('s1')
        assert len(history) == 3
        assert history[0]['role'] == 'system'
        assert [turn['role'] for turn in history[1:]] == ['user', 'assistant']

    @pytest.mark.parametrize('session_id,message', [('', 'hi'), ('s1', ''), ('s1', '   '), (None, 'hi')])
    def test_missing_fields(self, engine, session_id, message):
        with pytest.raises(ChatRequestError):
            engine.reply(session_id, message)


def test_build_chat_engine_without_store(monkeypatch, fake_embedder, fake_store, fake_llm):
    from storefront_rag.llm import llama_cpp
    from storefront_rag.retriever import embedder as embedder_module
    from storefront_rag.retriever import vector_store as vector_store_module

    monkeypatch.setattr(embedder_module, 'get_embedding_manager', lambda cfg, expected_dim=None: fake_embedder)
    monkeypatch.setattr(vector_store_module, 'get_vector_store', lambda cfg: fake_store)
    monkeypatch.setattr(llama_cpp, 'get_llm', lambda cfg: fake_llm)

    engine = build_chat_engine({
        'chat': {'store_url': 'https://shop.example', 'collections': COLLECTIONS, 'top_k': 5},
    })

    assert len(engine.catalog) == 0
    assert engine.top_k == 5
    assert engine.collections.match('necklace') == ('collares', 'Collares')


def test_build_chat_engine_matches_indexed_dimension(monkeypatch, fake_embedder, fake_store, fake_llm):
    from storefront_rag.llm import llama_cpp
    from storefront_rag.retriever import embedder as embedder_module
    from storefront_rag.retriever import vector_store as vector_store_module

    seen = {}

    def fake_get_embedding_manager(cfg, expected_dim=None):
        seen['expected_dim'] = expected_dim
        return fake_embedder

    fake_store.upsert(['record'], [[0.0] * 384])
    monkeypatch.setattr(embedder_module, 'get_embedding_manager', fake_get_embedding_manager)
    monkeypatch.setattr(vector_store_module, 'get_vector_store', lambda cfg: fake_store)
    monkeypatch.setattr(llama_cpp, 'get_llm', lambda cfg: fake_llm)

    build_chat_engine({'chat': {}})

    assert seen['expected_dim'] == 384
