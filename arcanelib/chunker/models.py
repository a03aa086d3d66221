from dataclasses import dataclass


@dataclass
class Chunk:
    """
    Fragmento de texto acotado en tokens que viaja en una sola llamada al modelo.
    index es la clave de orden; id es solo una etiqueta para logs.
    overlap: oraciones finales del chunk anterior, solo como contexto (no se traducen).
    """
    id:          str
    content:     str
    index:       int
    token_count: int
    overlap:     str = ""


@dataclass
class ChunkerConfig:
    """Configuración del chunker. Centralizada y explícita."""
    max_tokens:          int  = 2000
    overlap_sentences:   int  = 2
    preserve_paragraphs: bool = True
