"""Collapsing and re-expanding genes with identical reduced vectors.

t-SNE is undefined when two input rows coincide, and sparse expression
data routinely produces genes with identical profiles. Instead of
dropping such genes, each set of identical vectors is collapsed into one
group row before embedding and every member receives the group's point
afterwards.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import hashlib
import logging

import numpy as np
import pandas as pd

from .config import DedupConfig
from .errors import ConfigurationError


def fingerprint_vector(vector: np.ndarray, decimals: int = 10) -> str:
    """Return an exact-value fingerprint of a numeric vector.

    Values are rounded to `decimals` places first so that solver noise in
    the last bits does not split genes that are identical in the input.
    Negative zero is folded into zero.

    Parameters
    ----------
    vector : np.ndarray
        1-D numeric vector
    decimals : int
        Decimal places kept before hashing

    Returns
    -------
    str
        Hex digest identifying the rounded vector
    """
    rounded = np.round(np.asarray(vector, dtype=np.float64), decimals) + 0.0
    return hashlib.sha1(np.ascontiguousarray(rounded).tobytes()).hexdigest()


@dataclass
class DedupResult:
    """Result from collapsing identical vectors.

    Attributes
    ----------
    vectors : pd.DataFrame
        Group id x components matrix; every row is distinct
    members : Dict[str, List[str]]
        Group id -> member gene ids, in input order
    gene_to_group : Dict[str, str]
        Gene id -> group id
    """

    vectors: pd.DataFrame
    members: Dict[str, List[str]] = field(default_factory=dict)
    gene_to_group: Dict[str, str] = field(default_factory=dict)

    @property
    def n_genes(self) -> int:
        return len(self.gene_to_group)

    @property
    def n_groups(self) -> int:
        return len(self.members)

    @property
    def collapsed_groups(self) -> Dict[str, List[str]]:
        """Groups holding more than one gene."""
        return {gid: genes for gid, genes in self.members.items() if len(genes) > 1}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for reporting."""
        collapsed = self.collapsed_groups
        return {
            "n_genes": self.n_genes,
            "n_groups": self.n_groups,
            "n_collapsed_groups": len(collapsed),
            "n_collapsed_genes": sum(len(g) for g in collapsed.values()),
        }


class Deduplicator:
    """Collapse genes sharing a reduced vector, and expand them back.

    Parameters
    ----------
    config : DedupConfig, optional
        Rounding and separator settings. If None, uses defaults.
    logger : logging.Logger, optional
        Logger instance. If None, uses the module logger.

    Example
    -------
    >>> dedup = Deduplicator()
    >>> collapsed = dedup.collapse(reduced.vectors)
    >>> points = embedder.embed(collapsed.vectors)
    >>> gene_points = dedup.expand(points, collapsed)
    """

    def __init__(
        self,
        config: Optional[DedupConfig] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config or DedupConfig()
        self.logger = logger or logging.getLogger(__name__)

    def group_id(self, genes: List[str]) -> str:
        """Synthetic id for a group: member ids joined by the separator."""
        return self.config.separator.join(genes)

    def check_gene_ids(self, genes: List[str], stage: str = "dedup") -> None:
        """Reject gene ids that would make group ids ambiguous.

        Raises
        ------
        ConfigurationError
            If any gene id contains the separator
        """
        sep = self.config.separator
        clashing = [g for g in genes if sep in str(g)]
        if clashing:
            raise ConfigurationError(
                f"{len(clashing)} gene ids contain the group separator {sep!r} "
                f"(e.g. {clashing[:5]}); choose another separator",
                stage=stage,
                separator=sep,
                genes=clashing[:20],
            )

    def collapse(self, vectors: pd.DataFrame) -> DedupResult:
        """Group genes by vector fingerprint and emit one row per group.

        Singleton groups keep the gene id. Larger groups get an id made of
        all member ids joined by the separator; the row is the shared vector.

        Parameters
        ----------
        vectors : pd.DataFrame
            Gene x components matrix

        Returns
        -------
        DedupResult
            Distinct vectors plus the lookup needed by `expand`
        """
        genes = [str(g) for g in vectors.index]
        if len(set(genes)) != len(genes):
            raise ConfigurationError(
                "Duplicate gene ids in reduced vectors", stage="dedup"
            )

        values = vectors.to_numpy(dtype=float)
        keys = [fingerprint_vector(vector, self.config.decimals) for vector in values]
        groups: Dict[str, List[int]] = {}
        for row, key in enumerate(keys):
            groups.setdefault(key, []).append(row)

        ids: List[str] = []
        first_rows: List[int] = []
        members: Dict[str, List[str]] = {}
        key_to_group: Dict[str, str] = {}
        for key, rows in groups.items():
            names = [genes[r] for r in rows]
            gid = names[0] if len(names) == 1 else self.group_id(names)
            ids.append(gid)
            first_rows.append(rows[0])
            members[gid] = names
            key_to_group[key] = gid
        gene_to_group = {gene: key_to_group[key] for gene, key in zip(genes, keys)}
        if len(members) != len(groups):
            raise ConfigurationError(
                "Group ids collide with existing gene ids; gene ids must not "
                f"contain the separator {self.config.separator!r}",
                stage="dedup",
                separator=self.config.separator,
            )

        collapsed = pd.DataFrame(
            values[first_rows], index=pd.Index(ids), columns=vectors.columns
        )
        result = DedupResult(vectors=collapsed, members=members, gene_to_group=gene_to_group)

        n_collapsed = len(result.collapsed_groups)
        if n_collapsed:
            self.logger.info(
                "Collapsed %d genes with identical reduced vectors into %d groups (%d -> %d rows)",
                result.to_dict()["n_collapsed_genes"],
                n_collapsed,
                len(genes),
                result.n_groups,
            )
        else:
            self.logger.info("All %d reduced vectors are distinct", len(genes))
        return result

    def expand(self, points: pd.DataFrame, result: DedupResult) -> pd.DataFrame:
        """Give every member gene the point computed for its group.

        Parameters
        ----------
        points : pd.DataFrame
            Group id x coordinates, as returned by the embedder
        result : DedupResult
            The `collapse` result the points were computed from

        Returns
        -------
        pd.DataFrame
            Gene x coordinates, genes in the original input order

        Raises
        ------
        ValueError
            If points and the group lookup disagree on the set of groups
        """
        expected = set(result.members)
        received = set(map(str, points.index))
        if expected != received or len(points.index) != len(expected):
            missing = sorted(expected - received)
            extra = sorted(received - expected)
            raise ValueError(
                f"Embedded points do not match dedup groups "
                f"(missing={missing[:5]}, unexpected={extra[:5]})"
            )

        points = points.copy()
        points.index = points.index.map(str)
        genes = list(result.gene_to_group)
        groups = [result.gene_to_group[g] for g in genes]
        expanded = points.loc[groups]
        expanded.index = pd.Index(genes)
        return expanded
