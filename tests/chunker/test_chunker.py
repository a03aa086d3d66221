# tests/chunker/test_chunker.py
import pytest

from arcanelib.chunker import (
    Chunk,
    Chunker,
    ChunkerConfig,
    ChunkMergeError,
    chunk_text,
    estimate_tokens,
    merge_chunks,
    split_into_sections,
    split_paragraphs,
)


def make_text(n_paragraphs: int, paragraph_chars: int = 120) -> str:
    """Párrafos de tamaño fijo separados por línea en blanco."""
    paragraphs = []
    for i in range(n_paragraphs):
        head = f"Párrafo {i}. "
        paragraphs.append(head + "x" * (paragraph_chars - len(head)))
    return "\n\n".join(paragraphs)


def make_long_paragraph(n_sentences: int) -> str:
    return " ".join(f"Frase número {i} con algo de texto." for i in range(n_sentences))


def make_chunk(index: int, content: str) -> Chunk:
    return Chunk(id=f"chunk_{index}", content=content, index=index, token_count=0)


# ------------------------------------------------------------------
# Estimación de tokens
# ------------------------------------------------------------------

class TestEstimateTokens:

    def test_cuatro_caracteres_por_token(self):
        assert estimate_tokens("abcd") == 1

    def test_redondea_hacia_arriba(self):
        assert estimate_tokens("abcde") == 2

    def test_texto_vacio(self):
        assert estimate_tokens("") == 0


# ------------------------------------------------------------------
# Chunking por párrafos
# ------------------------------------------------------------------

class TestChunker:

    def test_texto_vacio_no_genera_chunks(self):
        assert chunk_text("") == []
        assert chunk_text("   \n\n  ") == []

    def test_texto_corto_un_solo_chunk(self):
        chunks = chunk_text("Hello.\n\nWorld.", ChunkerConfig(max_tokens=100))
        assert len(chunks) == 1
        assert chunks[0].index == 0
        assert chunks[0].id == "chunk_0"
        assert chunks[0].content == "Hello.\n\nWorld."

    def test_respeta_el_presupuesto_de_tokens(self):
        # 120 caracteres = 30 tokens por párrafo; caben 2 por chunk de 70
        chunks = chunk_text(make_text(6), ChunkerConfig(max_tokens=70))
        assert len(chunks) == 3
        for chunk in chunks:
            assert chunk.token_count <= 70

    def test_indices_contiguos(self):
        chunks = chunk_text(make_text(10), ChunkerConfig(max_tokens=40))
        assert [c.index for c in chunks] == list(range(len(chunks)))

    def test_nunca_parte_un_parrafo_que_cabe(self):
        text   = make_text(5)
        chunks = chunk_text(text, ChunkerConfig(max_tokens=70))
        pieces = [p for c in chunks for p in split_paragraphs(c.content)]
        assert pieces == split_paragraphs(text)

    def test_round_trip_con_merge(self):
        text   = make_text(8)
        chunks = chunk_text(text, ChunkerConfig(max_tokens=50))
        assert merge_chunks(chunks) == "\n\n".join(split_paragraphs(text))

    def test_parrafo_gigante_se_corta_por_oraciones(self):
        paragraph = make_long_paragraph(12)
        chunks    = chunk_text(paragraph, ChunkerConfig(max_tokens=30))

        assert len(chunks) > 1
        joined = " ".join(c.content for c in chunks)
        assert joined == paragraph

    def test_solapamiento_viaja_como_contexto(self):
        paragraph = make_long_paragraph(12)
        chunks    = chunk_text(paragraph, ChunkerConfig(max_tokens=30, overlap_sentences=1))

        assert chunks[0].overlap == ""
        for previous, current in zip(chunks, chunks[1:]):
            assert current.overlap
            assert previous.content.endswith(current.overlap)
            # El solapamiento no se duplica en el contenido
            assert not current.content.startswith(current.overlap)

    def test_sin_solapamiento_si_se_configura_cero(self):
        chunks = chunk_text(make_long_paragraph(12), ChunkerConfig(max_tokens=30, overlap_sentences=0))
        assert all(c.overlap == "" for c in chunks)

    def test_modo_oraciones_ignora_parrafos(self):
        config = ChunkerConfig(max_tokens=1000, preserve_paragraphs=False)
        chunks = Chunker(config).chunk("Uno. Dos.\n\nTres.")
        assert len(chunks) == 1


# ------------------------------------------------------------------
# Merge
# ------------------------------------------------------------------

class TestMergeChunks:

    def test_ordena_por_index(self):
        chunks = [make_chunk(1, "B"), make_chunk(0, "A"), make_chunk(2, "C")]
        assert merge_chunks(chunks) == "A\n\nB\n\nC"

    def test_descarta_chunks_vacios(self):
        chunks = [make_chunk(0, "A"), make_chunk(1, "   "), make_chunk(2, "C")]
        assert merge_chunks(chunks) == "A\n\nC"

    def test_indices_con_hueco_lanzan_error(self):
        with pytest.raises(ChunkMergeError):
            merge_chunks([make_chunk(0, "A"), make_chunk(2, "C")])

    def test_todos_vacios_lanzan_error(self):
        with pytest.raises(ChunkMergeError):
            merge_chunks([make_chunk(0, ""), make_chunk(1, " ")])

    def test_lista_vacia_lanza_error(self):
        with pytest.raises(ChunkMergeError):
            merge_chunks([])


# ------------------------------------------------------------------
# Secciones
# ------------------------------------------------------------------

class TestSplitIntoSections:

    def test_texto_corto_una_seccion(self):
        assert split_into_sections("Uno.\n\nDos.") == ["Uno.\n\nDos."]

    def test_no_parte_parrafos_entre_secciones(self):
        text     = make_text(10)
        sections = split_into_sections(text, max_section_tokens=100)

        assert len(sections) > 1
        rebuilt = [p for s in sections for p in split_paragraphs(s)]
        assert rebuilt == split_paragraphs(text)
