"""Configuration classes for gene module discovery.

All thresholds, sizes and seeds are explicit fields here rather than
process-wide defaults, so a run is a pure function of its inputs and
this configuration.
"""

from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .errors import ConfigurationError

LINKAGE_METHODS = ("single", "complete", "average", "weighted", "ward")


@dataclass
class FilterConfig:
    """Configuration for detection-based gene filtering.

    Attributes
    ----------
    min_cells : int
        Keep a gene detected in at least this many cells overall
    min_fraction : float
        Keep a gene detected in at least this fraction of any one cluster
    cluster_key : str
        Cell metadata column with cluster labels
    sample_key : str
        Cell metadata column with sample labels
    """

    min_cells: int = 500
    min_fraction: float = 0.2
    cluster_key: str = "cluster"
    sample_key: str = "sample"


@dataclass
class ReductionConfig:
    """Configuration for PCA over genes.

    Attributes
    ----------
    n_dim : int
        Requested number of principal components
    strict_n_dim : bool
        Raise when n_dim exceeds min(genes, cells) - 1. If False, n_dim
        is clamped to that bound with a warning.
    svd_solver : str
        Solver passed to PCA
    """

    n_dim: int = 30
    strict_n_dim: bool = True
    svd_solver: str = "arpack"


@dataclass
class DedupConfig:
    """Configuration for collapsing identical reduced vectors.

    Attributes
    ----------
    decimals : int
        Decimal places kept before fingerprinting a vector
    separator : str
        Joins member gene ids into a group id; must not occur in gene ids
    """

    decimals: int = 10
    separator: str = "|"


@dataclass
class EmbeddingConfig:
    """Configuration for the t-SNE gene map.

    Attributes
    ----------
    perplexity : float
        t-SNE perplexity (clamped for small inputs)
    n_jobs : int
        Worker threads for neighbor search
    """

    perplexity: float = 30.0
    n_jobs: int = 1


@dataclass
class PartitionConfig:
    """Configuration for cutting the gene dendrogram.

    Attributes
    ----------
    module_count : int
        Number of modules to cut the dendrogram into
    linkage : str
        Hierarchical linkage method
    """

    module_count: int = 5
    linkage: str = "complete"


@dataclass
class ScoringConfig:
    """Configuration for background-corrected module scoring.

    Attributes
    ----------
    nbin : int
        Number of average-expression bins over the gene universe
    nctrl : int
        Control genes drawn from the bin of each module gene
    """

    nbin: int = 24
    nctrl: int = 100


@dataclass
class ModuleDiscoveryConfig:
    """Master configuration for gene module discovery and scoring.

    Attributes
    ----------
    filtering : FilterConfig
        Detection filter configuration
    reduction : ReductionConfig
        PCA configuration
    dedup : DedupConfig
        Deduplication configuration
    embedding : EmbeddingConfig
        t-SNE configuration
    partition : PartitionConfig
        Dendrogram cut configuration
    scoring : ScoringConfig
        Module scoring configuration
    random_seed : int, optional
        Seed for t-SNE initialisation and control gene sampling.
        None draws fresh entropy and makes runs irreproducible.
    """

    filtering: FilterConfig = field(default_factory=FilterConfig)
    reduction: ReductionConfig = field(default_factory=ReductionConfig)
    dedup: DedupConfig = field(default_factory=DedupConfig)
    embedding: EmbeddingConfig = field(default_factory=EmbeddingConfig)
    partition: PartitionConfig = field(default_factory=PartitionConfig)
    scoring: ScoringConfig = field(default_factory=ScoringConfig)
    random_seed: Optional[int] = 1337

    @classmethod
    def from_yaml(cls, path: Path) -> "ModuleDiscoveryConfig":
        """Load configuration from YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f) or {}

        # Handle nested modules section
        if "modules" in data:
            data = data["modules"]

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ModuleDiscoveryConfig":
        """Build configuration from a nested dictionary.

        Raises
        ------
        ConfigurationError
            If a section or field name is not recognised
        """
        sections = {
            "filtering": FilterConfig,
            "reduction": ReductionConfig,
            "dedup": DedupConfig,
            "embedding": EmbeddingConfig,
            "partition": PartitionConfig,
            "scoring": ScoringConfig,
        }
        unknown = sorted(set(data) - set(sections) - {"random_seed"})
        if unknown:
            raise ConfigurationError(
                f"Unknown configuration sections: {', '.join(map(str, unknown))}",
                stage="config",
                unknown=unknown,
            )

        built = {}
        for name, section_cls in sections.items():
            try:
                built[name] = section_cls(**(data.get(name) or {}))
            except TypeError as e:
                raise ConfigurationError(
                    f"Invalid '{name}' section: {e}", stage="config", section=name
                ) from e
        return cls(random_seed=data.get("random_seed", 1337), **built)

    @classmethod
    def default(cls) -> "ModuleDiscoveryConfig":
        """Create default configuration."""
        return cls()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    def validate(self) -> None:
        """Check parameter ranges.

        Raises
        ------
        ConfigurationError
            If any parameter is outside its valid range
        """
        problems = {}
        if self.filtering.min_cells < 0:
            problems["min_cells"] = self.filtering.min_cells
        if not 0.0 <= self.filtering.min_fraction <= 1.0:
            problems["min_fraction"] = self.filtering.min_fraction
        if self.reduction.n_dim < 1:
            problems["n_dim"] = self.reduction.n_dim
        if self.dedup.decimals < 0:
            problems["decimals"] = self.dedup.decimals
        if not self.dedup.separator:
            problems["separator"] = self.dedup.separator
        if self.embedding.perplexity <= 0:
            problems["perplexity"] = self.embedding.perplexity
        if self.partition.module_count < 2:
            problems["module_count"] = self.partition.module_count
        if self.partition.linkage not in LINKAGE_METHODS:
            problems["linkage"] = self.partition.linkage
        if self.scoring.nbin < 1:
            problems["nbin"] = self.scoring.nbin
        if self.scoring.nctrl < 1:
            problems["nctrl"] = self.scoring.nctrl

        if problems:
            listing = ", ".join(f"{k}={v!r}" for k, v in problems.items())
            raise ConfigurationError(
                f"Invalid configuration values: {listing}", stage="config", **problems
            )
