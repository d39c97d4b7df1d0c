"""WordPiece tokenizer producing fixed-length model input for URL classifiers.

The tokenizer mirrors the BERT uncased pipeline (lowercase, punctuation split,
greedy longest-match subwords with ``##`` continuation markers) with a small
URL-specific normalization step. Loading the vocabulary never fails: when the
configured file is missing or malformed a built-in minimal vocabulary is used,
so tokenization degrades to coarser pieces instead of raising.
"""

from __future__ import annotations

from dataclasses import dataclass
import json
import logging
from pathlib import Path
import re
import threading

logger = logging.getLogger(__name__)

MAX_SEQUENCE_LENGTH = 128
CONTINUATION_PREFIX = "##"

PAD_TOKEN = "[PAD]"
UNK_TOKEN = "[UNK]"
CLS_TOKEN = "[CLS]"
SEP_TOKEN = "[SEP]"
MASK_TOKEN = "[MASK]"
SPECIAL_TOKENS = (PAD_TOKEN, UNK_TOKEN, CLS_TOKEN, SEP_TOKEN, MASK_TOKEN)

_MINIMAL_TERMS = (
    "http", "https", "www", "com", "org", "net", "io", "co",
    "login", "sign", "account", "secure", "verify", "update",
    "password", "credential", "bank", "pay", "wallet", "crypto",
    "google", "facebook", "amazon", "microsoft", "apple",
    "phish", "scam", "fake", "urgent", "alert", "suspend",
    ".", "/", "-", "_", "@", "?", "=", "&", "#", ":", "%",
    "0", "1", "2", "3", "4", "5", "6", "7", "8", "9",
)

_PROTOCOL_RE = re.compile(r"^https?://")
_WHITESPACE_RE = re.compile(r"\s+")


@dataclass(frozen=True)
class EncodedInput:
    input_ids: tuple[int, ...]
    attention_mask: tuple[int, ...]
    # Size of the vocabulary the ids index into.
    vocab_size: int = 0

    def __len__(self) -> int:
        return len(self.input_ids)


class Vocabulary:
    """Read-only token <-> id mapping with guaranteed special tokens."""

    def __init__(self, token_to_id: dict[str, int], *, source: str = "memory") -> None:
        missing = [token for token in SPECIAL_TOKENS if token not in token_to_id]
        if missing:
            raise ValueError(f"vocabulary missing reserved tokens: {missing}")
        if sorted(token_to_id.values()) != list(range(len(token_to_id))):
            raise ValueError("vocabulary ids must be unique and dense (0..n-1)")
        self._token_to_id = dict(token_to_id)
        self._id_to_token = {idx: token for token, idx in token_to_id.items()}
        self.source = source

    @classmethod
    def from_file(cls, path: str | Path) -> "Vocabulary":
        """Load ``vocab.json`` ({token: id}) or ``vocab.txt`` (one token per line)."""

        p = Path(path)
        raw = p.read_text(encoding="utf-8")
        if p.suffix.lower() == ".json":
            payload = json.loads(raw)
            if not isinstance(payload, dict):
                raise ValueError("vocab.json must contain an object mapping token -> id")
            mapping = {str(token): int(idx) for token, idx in payload.items()}
        else:
            mapping = {}
            for line in raw.splitlines():
                token = line.rstrip("\n")
                if token and token not in mapping:
                    mapping[token] = len(mapping)
        return cls(mapping, source=str(p))

    @classmethod
    def minimal(cls) -> "Vocabulary":
        mapping: dict[str, int] = {}
        for token in (*SPECIAL_TOKENS, *_MINIMAL_TERMS, *"abcdefghijklmnopqrstuvwxyz"):
            if token not in mapping:
                mapping[token] = len(mapping)
        return cls(mapping, source="minimal")

    def __contains__(self, token: object) -> bool:
        return token in self._token_to_id

    def __len__(self) -> int:
        return len(self._token_to_id)

    def token_id(self, token: str) -> int:
        return self._token_to_id.get(token, self._token_to_id[UNK_TOKEN])

    def token(self, idx: int) -> str | None:
        return self._id_to_token.get(idx)

    @property
    def pad_id(self) -> int:
        return self._token_to_id[PAD_TOKEN]

    @property
    def unk_id(self) -> int:
        return self._token_to_id[UNK_TOKEN]

    @property
    def cls_id(self) -> int:
        return self._token_to_id[CLS_TOKEN]

    @property
    def sep_id(self) -> int:
        return self._token_to_id[SEP_TOKEN]

    @property
    def mask_id(self) -> int:
        return self._token_to_id[MASK_TOKEN]


def _is_punctuation(char: str) -> bool:
    code = ord(char)
    return 33 <= code <= 47 or 58 <= code <= 64 or 91 <= code <= 96 or 123 <= code <= 126


def preprocess_text(text: str) -> str:
    processed = _WHITESPACE_RE.sub(" ", (text or "").lower()).strip()
    processed = _PROTOCOL_RE.sub("", processed)
    if processed.startswith("www."):
        processed = processed[4:]
    return processed


def basic_tokenize(text: str) -> list[str]:
    tokens: list[str] = []
    current: list[str] = []
    for char in text:
        if char.isspace() or _is_punctuation(char):
            if current:
                tokens.append("".join(current))
                current = []
            if not char.isspace():
                tokens.append(char)
        else:
            current.append(char)
    if current:
        tokens.append("".join(current))
    return tokens


class WordPieceTokenizer:
    """Lazy-loading WordPiece tokenizer shared read-only across scans."""

    def __init__(
        self,
        vocab_path: str | Path | None = None,
        *,
        vocabulary: Vocabulary | None = None,
        max_length: int = MAX_SEQUENCE_LENGTH,
    ) -> None:
        if max_length < 2:
            raise ValueError("max_length must leave room for [CLS] and [SEP]")
        self.vocab_path = Path(vocab_path) if vocab_path else None
        self.max_length = max_length
        self._vocab = vocabulary
        self._lock = threading.Lock()

    def initialize(self) -> None:
        if self._vocab is not None:
            return
        with self._lock:
            if self._vocab is not None:
                return
            self._vocab = self._load_vocabulary()

    def _load_vocabulary(self) -> Vocabulary:
        if self.vocab_path is None:
            logger.info("No vocabulary path configured; using minimal vocabulary")
            return Vocabulary.minimal()
        try:
            vocab = Vocabulary.from_file(self.vocab_path)
        except (OSError, TypeError, ValueError) as exc:
            logger.warning("Failed to load vocabulary from %s (%s); using minimal vocabulary", self.vocab_path, exc)
            return Vocabulary.minimal()
        logger.info("Loaded %d tokens from %s", len(vocab), self.vocab_path)
        return vocab

    @property
    def vocabulary(self) -> Vocabulary:
        self.initialize()
        assert self._vocab is not None
        return self._vocab

    def is_ready(self) -> bool:
        return self._vocab is not None

    def vocab_size(self) -> int:
        return len(self.vocabulary)

    def special_token_ids(self) -> dict[str, int]:
        vocab = self.vocabulary
        return {
            "pad": vocab.pad_id,
            "unk": vocab.unk_id,
            "cls": vocab.cls_id,
            "sep": vocab.sep_id,
            "mask": vocab.mask_id,
        }

    def tokenize(self, text: str) -> list[str]:
        pieces: list[str] = []
        for word in basic_tokenize(preprocess_text(text)):
            pieces.extend(self._wordpiece(word))
        return pieces

    def _wordpiece(self, word: str) -> list[str]:
        vocab = self.vocabulary
        if not word:
            return []
        if word in vocab:
            return [word]
        pieces: list[str] = []
        start = 0
        while start < len(word):
            end = len(word)
            match = None
            while start < end:
                candidate = word[start:end]
                if start > 0:
                    candidate = CONTINUATION_PREFIX + candidate
                if candidate in vocab:
                    match = candidate
                    break
                end -= 1
            if match is None:
                pieces.append(UNK_TOKEN)
                start += 1
            else:
                pieces.append(match)
                start = end
        return pieces

    def encode(self, text: str, max_length: int | None = None) -> EncodedInput:
        length = max_length or self.max_length
        if length < 2:
            raise ValueError("max_length must leave room for [CLS] and [SEP]")
        vocab = self.vocabulary
        pieces = self.tokenize(text)[: length - 2]
        ids = [vocab.cls_id, *(vocab.token_id(piece) for piece in pieces), vocab.sep_id]
        mask = [1] * len(ids)
        padding = length - len(ids)
        ids.extend([vocab.pad_id] * padding)
        mask.extend([0] * padding)
        return EncodedInput(input_ids=tuple(ids), attention_mask=tuple(mask), vocab_size=len(vocab))

    def batch_encode(self, texts: list[str], max_length: int | None = None) -> list[EncodedInput]:
        return [self.encode(text, max_length) for text in texts]

    def decode(self, ids: list[int] | tuple[int, ...]) -> str:
        """Debug helper: join non-special tokens and glue continuation pieces."""

        vocab = self.vocabulary
        tokens = [token for token in (vocab.token(idx) for idx in ids) if token and token not in SPECIAL_TOKENS]
        return " ".join(tokens).replace(f" {CONTINUATION_PREFIX}", "")
