"""
Near-duplicate article removal for the aggregated feed set.

DEDUP PIPELINE (2 stages):
  1. EXACT:        Same URL (or same lowercased title when URL is empty)
  2. MINHASH LSH:  Character-shingle MinHash, 20 bands x 5 rows, verified
                   against the estimated Jaccard similarity

WHY character shingles (k=3): digest items are short (headline + teaser).
Word shingles on 30 words give too few features for a stable estimate;
character trigrams survive small rewordings ("launches" vs "Launches ...
Today") while still separating different stories.

WHY banding: with b bands of r rows two items become candidates with
probability 1 - (1 - s^r)^b. For b=20, r=5 that is ~0.47 at s=0.5 and
~0.9996 at s=0.8, so only likely pairs are compared: O(n * bands) instead
of O(n^2) pairwise.

ORDERING CONTRACT: items are processed in input order and only compared
against items already in the index. The first item of a cluster is always
the one kept. The orchestrator feeds sources in priority order, so the
highest-priority outlet wins ties.

REQUIRES: pip install datasketch

REF: Broder, "On the resemblance and containment of documents" (1997)
     Leskovec, Rajaraman, Ullman, "Mining of Massive Datasets" Ch. 3
"""

import logging
import re
from typing import Dict, List, Set

from datasketch import MinHash, MinHashLSH

from ..schemas import ArticleSignature, NewsItem

logger = logging.getLogger(__name__)

_WS_RE = re.compile(r'\s+')

# Fixed so signatures are identical across runs and processes
MINHASH_SEED = 1


def normalize_text(text: str) -> str:
    return _WS_RE.sub(' ', (text or '').lower()).strip()


def build_shingles(text: str, k: int = 3) -> Set[str]:
    """
    Character k-grams of the normalized text.

    "gpt-5 today" with k=3 → {"gpt", "pt-", "t-5", "-5 ", "5 t", " to", ...}
    Text shorter than k is a single shingle.
    """
    normalized = normalize_text(text)
    if len(normalized) < k:
        return {normalized}
    return {normalized[i:i + k] for i in range(len(normalized) - k + 1)}


def remove_duplicates_by_url(items: List[NewsItem]) -> List[NewsItem]:
    """Exact pass: first occurrence of each URL (or title, if no URL) wins."""
    seen: Set[str] = set()
    unique = []
    for item in items:
        key = item.url or item.title.lower().strip()
        if key in seen:
            continue
        seen.add(key)
        unique.append(item)
    return unique


class ArticleDeduplicator:
    """
    MinHash LSH deduplication engine for news items.

    Catches near-duplicates that URL matching misses:
    - Same wire story republished by several outlets
    - Reworded or extended headlines over the same teaser
    """

    def __init__(
        self,
        similarity_threshold: float = 0.8,
        shingle_size: int = 3,
        num_hashes: int = 100,
        num_bands: int = 20,
        rows_per_band: int = 5,
    ):
        """
        Args:
            similarity_threshold: Estimated Jaccard at or above which two items
                       are the same story. 0.8 = reworded headline, same body.
                       Raising it towards 1.0 removes fewer items.
            shingle_size: Characters per shingle.
            num_hashes: MinHash permutations (signature length).
            num_bands / rows_per_band: LSH banding. Their product must not
                       exceed num_hashes.
        """
        if not 0.0 < similarity_threshold <= 1.0:
            raise ValueError(f"similarity_threshold must be in (0, 1], got {similarity_threshold}")
        for label, value in (
            ("shingle_size", shingle_size),
            ("num_hashes", num_hashes),
            ("num_bands", num_bands),
            ("rows_per_band", rows_per_band),
        ):
            if value < 1:
                raise ValueError(f"{label} must be >= 1, got {value}")
        if num_bands * rows_per_band > num_hashes:
            raise ValueError(
                f"num_bands * rows_per_band ({num_bands} * {rows_per_band}) "
                f"exceeds signature length {num_hashes}"
            )

        self.similarity_threshold = similarity_threshold
        self.shingle_size = shingle_size
        self.num_hashes = num_hashes
        self.num_bands = num_bands
        self.rows_per_band = rows_per_band

    def build_signature(self, item: NewsItem) -> ArticleSignature:
        text = item.signature_text()
        m = MinHash(num_perm=self.num_hashes, seed=MINHASH_SEED)
        for shingle in build_shingles(text, self.shingle_size):
            m.update(shingle.encode('utf-8'))
        return ArticleSignature(
            item=item,
            signature=[int(v) for v in m.hashvalues],
            content_hash=ArticleSignature.hash_text(normalize_text(text)),
            minhash=m,
        )

    @staticmethod
    def estimate_similarity(a: ArticleSignature, b: ArticleSignature) -> float:
        """Fraction of signature positions that agree."""
        if len(a.signature) != len(b.signature) or not a.signature:
            return 0.0
        matches = sum(1 for x, y in zip(a.signature, b.signature) if x == y)
        return matches / len(a.signature)

    def deduplicate(self, items: List[NewsItem], use_lsh: bool = True) -> List[NewsItem]:
        """Exact pass, then (optionally) the LSH pass. Order-preserving."""
        if not items:
            return []

        initial_count = len(items)
        unique = remove_duplicates_by_url(items)
        exact_removed = initial_count - len(unique)

        if use_lsh and len(unique) > 1:
            unique = self._minhash_dedup(unique)

        total_removed = initial_count - len(unique)
        if total_removed > 0:
            logger.info(
                f"Dedup summary: {initial_count} → {len(unique)} "
                f"(exact {exact_removed}, near {total_removed - exact_removed}, "
                f"removed {total_removed/initial_count*100:.1f}%)"
            )
        return unique

    def _minhash_dedup(self, items: List[NewsItem]) -> List[NewsItem]:
        """Single streaming pass: query already-indexed items, then index this one."""
        lsh = MinHashLSH(
            threshold=self.similarity_threshold,
            num_perm=self.num_hashes,
            params=(self.num_bands, self.rows_per_band),
        )
        signatures: Dict[str, ArticleSignature] = {}
        representative: Dict[str, str] = {}   # key -> key of the item kept for its cluster
        processed_hashes: Set[str] = set()
        unique: List[NewsItem] = []
        exact_content = 0
        duplicate_examples = []

        for i, item in enumerate(items):
            sig = self.build_signature(item)
            if sig.content_hash in processed_hashes:
                exact_content += 1
                continue

            key = str(i)
            similar = sorted(
                (
                    c for c in lsh.query(sig.minhash)
                    if self.estimate_similarity(sig, signatures[c]) >= self.similarity_threshold
                ),
                key=int,
            )

            lsh.insert(key, sig.minhash)
            signatures[key] = sig
            processed_hashes.add(sig.content_hash)

            if similar:
                kept = min((representative[c] for c in similar), key=int)
                representative[key] = kept
                if len(duplicate_examples) < 3:
                    duplicate_examples.append({
                        "removed": item.title[:60],
                        "kept": signatures[kept].item.title[:60],
                    })
                continue

            representative[key] = key
            unique.append(item)

        near = len(items) - len(unique) - exact_content
        logger.info(
            f"LSH dedup: {len(items)} → {len(unique)} unique "
            f"({near} near-duplicates, {exact_content} identical, "
            f"threshold={self.similarity_threshold}, bands={self.num_bands}x{self.rows_per_band})"
        )
        if duplicate_examples:
            logger.info(f"  Duplicate examples: {duplicate_examples}")
        return unique


def deduplicate_articles(
    items: List[NewsItem],
    use_lsh: bool = True,
    threshold: float = 0.8,
) -> List[NewsItem]:
    """Convenience wrapper with default shingle/hash/band parameters."""
    return ArticleDeduplicator(similarity_threshold=threshold).deduplicate(items, use_lsh=use_lsh)
