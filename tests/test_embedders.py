import numpy as np
import pytest
from PIL import Image

from vibetag.embedders import HashingEmbedder, build_concept_embedding, concept_prompts
from vibetag.errors import EmbeddingProviderError


class TestHashingEmbedder:
    def test_text_is_deterministic_and_normalized(self):
        embedder = HashingEmbedder(dim=64)
        first = embedder.embed_text("minimal")
        assert first.shape == (64,)
        assert first.dtype == np.float32
        assert np.linalg.norm(first) == pytest.approx(1.0, abs=1e-5)
        np.testing.assert_array_equal(first, HashingEmbedder(dim=64).embed_text("minimal"))
        assert not np.allclose(first, embedder.embed_text("playful"))

    def test_batch_matches_single(self):
        embedder = HashingEmbedder(dim=16)
        batch = embedder.embed_texts(["a", "b"])
        assert batch.shape == (2, 16)
        np.testing.assert_array_equal(batch[1], embedder.embed_text("b"))
        assert embedder.embed_texts([]).shape == (0, 16)

    def test_image_embedding(self):
        embedder = HashingEmbedder(dim=32, image_size=8)
        red = Image.new("RGB", (20, 20), color=(255, 0, 0))
        vector = embedder.embed_image(red)
        assert vector.shape == (32,)
        assert np.linalg.norm(vector) == pytest.approx(1.0, abs=1e-5)
        np.testing.assert_allclose(vector, embedder.embed_image(red.resize((40, 40))), atol=1e-5)


class TestConceptEmbeddings:
    def test_prompts_include_every_term(self):
        assert concept_prompts("Minimal", ["clean"], ["", "airy"]) == [
            "website UI with a Minimal visual style",
            "website UI with a clean visual style",
            "website UI with a airy visual style",
        ]

    def test_mean_of_prompt_embeddings(self):
        embedder = HashingEmbedder(dim=32)
        vector = build_concept_embedding(embedder, "minimal", ["clean"])
        prompts = concept_prompts("minimal", ["clean"])
        expected = embedder.embed_texts(prompts).mean(axis=0)
        np.testing.assert_allclose(vector, expected / np.linalg.norm(expected), atol=1e-6)

    def test_empty_label(self):
        with pytest.raises(ValueError):
            build_concept_embedding(HashingEmbedder(dim=8), "  ")

    def test_provider_returning_nothing(self):
        class EmptyEmbedder(HashingEmbedder):
            def embed_texts(self, texts):
                return np.empty((0, self.dim), dtype=np.float32)

        with pytest.raises(EmbeddingProviderError):
            build_concept_embedding(EmptyEmbedder(dim=8), "minimal")
