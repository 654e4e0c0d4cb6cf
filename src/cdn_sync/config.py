"""Configuration for cdn-sync."""

import os
from dataclasses import asdict, dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

from cdn_sync.exceptions import ConfigurationError

SUPPORTED_COMPRESSION = ("gzip", "deflate")

# Settings a push cannot start without
REQUIRED_FIELDS = ["url", "region", "buckets"]


@dataclass(frozen=True)
class AWSConfig:
    """AWS connection settings."""

    profile: Optional[str] = None
    region: Optional[str] = None
    endpoint: Optional[str] = None
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None


@dataclass(frozen=True)
class CloudFrontConfig:
    """CDN addressing in front of the bucket."""

    use: bool = False
    cdn_url: Optional[str] = None


@dataclass(frozen=True)
class S3Config:
    """Bucket and object settings used for every upload."""

    buckets: Dict[str, str] = field(default_factory=dict)
    upload_folder: str = ""
    acl: Optional[str] = "public-read"
    cache_control: Optional[str] = None
    metadata: Dict[str, str] = field(default_factory=dict)
    expires: Optional[str] = None
    use_path_style_endpoint: bool = False
    cloudfront: CloudFrontConfig = field(default_factory=CloudFrontConfig)


@dataclass(frozen=True)
class CompressionConfig:
    """Which assets get compressed before upload, and how."""

    algorithm: Optional[str] = None
    level: int = 9
    extensions: Tuple[str, ...] = ()


@dataclass(frozen=True)
class IncludeConfig:
    """Asset selection under the source root."""

    directories: Tuple[str, ...] = ()
    extensions: Tuple[str, ...] = ()
    patterns: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ExcludeConfig:
    """Assets dropped from the selection."""

    directories: Tuple[str, ...] = ()
    files: Tuple[str, ...] = ()
    extensions: Tuple[str, ...] = ()
    patterns: Tuple[str, ...] = ()
    hidden: bool = True


@dataclass(frozen=True)
class Config:
    """Main configuration class for cdn-sync."""

    url: Optional[str] = None
    source_root: Path = field(default_factory=lambda: Path("."))
    mimetypes: Dict[str, str] = field(default_factory=dict)
    chunk_size_mb: int = 8
    verbose: bool = False
    aws: AWSConfig = field(default_factory=AWSConfig)
    s3: S3Config = field(default_factory=S3Config)
    compression: CompressionConfig = field(default_factory=CompressionConfig)
    include: IncludeConfig = field(default_factory=IncludeConfig)
    exclude: ExcludeConfig = field(default_factory=ExcludeConfig)

    @property
    def bucket(self) -> str:
        """Bucket name: the first key of ``s3.buckets`` without trailing slashes."""
        if not self.s3.buckets:
            return ""
        return next(iter(self.s3.buckets)).rstrip("/")

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Config":
        """
        Build a configuration from a parsed config file.

        Every section is merged field by field over the defaults; unknown
        keys are rejected so typos surface as configuration errors.
        """
        data = dict(data or {})
        defaults = cls()

        aws = _section(AWSConfig, data.pop("aws", None), "aws")

        s3_data = dict(data.pop("s3", None) or {})
        cloudfront = _section(CloudFrontConfig, s3_data.pop("cloudfront", None), "s3.cloudfront")
        s3 = _section(S3Config, s3_data, "s3")
        s3 = replace(
            s3,
            buckets=dict(s3.buckets or {}),
            metadata=dict(s3.metadata or {}),
            cloudfront=cloudfront,
        )

        compression = _section(CompressionConfig, data.pop("compression", None), "compression")
        compression = replace(
            compression,
            algorithm=compression.algorithm or None,
            level=int(compression.level),
            extensions=_tuple(compression.extensions),
        )

        include = _section(IncludeConfig, data.pop("include", None), "include")
        include = replace(
            include,
            directories=_tuple(include.directories),
            extensions=_tuple(include.extensions),
            patterns=_tuple(include.patterns),
        )

        exclude = _section(ExcludeConfig, data.pop("exclude", None), "exclude")
        exclude = replace(
            exclude,
            directories=_tuple(exclude.directories),
            files=_tuple(exclude.files),
            extensions=_tuple(exclude.extensions),
            patterns=_tuple(exclude.patterns),
        )

        unknown = set(data) - {"url", "source_root", "mimetypes", "chunk_size_mb", "verbose"}
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")

        return cls(
            url=data.get("url", defaults.url),
            source_root=Path(data.get("source_root") or defaults.source_root),
            mimetypes=dict(data.get("mimetypes") or {}),
            chunk_size_mb=int(data.get("chunk_size_mb", defaults.chunk_size_mb)),
            verbose=bool(data.get("verbose", defaults.verbose)),
            aws=aws,
            s3=s3,
            compression=compression,
            include=include,
            exclude=exclude,
        )

    @classmethod
    def from_env(cls, base: Optional["Config"] = None) -> "Config":
        """Apply ``CDN_*`` environment variables on top of a configuration."""
        config = base or cls()

        aws = config.aws
        if os.getenv("CDN_AWS_PROFILE"):
            aws = replace(aws, profile=os.getenv("CDN_AWS_PROFILE"))
        if os.getenv("CDN_AWS_REGION"):
            aws = replace(aws, region=os.getenv("CDN_AWS_REGION"))
        if os.getenv("CDN_AWS_ENDPOINT"):
            aws = replace(aws, endpoint=os.getenv("CDN_AWS_ENDPOINT"))

        s3 = config.s3
        if os.getenv("CDN_S3_BUCKET"):
            s3 = replace(s3, buckets={os.getenv("CDN_S3_BUCKET"): "*"})
        if os.getenv("CDN_S3_UPLOAD_FOLDER") is not None:
            s3 = replace(s3, upload_folder=os.getenv("CDN_S3_UPLOAD_FOLDER"))

        return replace(
            config,
            url=os.getenv("CDN_URL", config.url),
            verbose=os.getenv("CDN_VERBOSE", str(config.verbose)).lower() == "true",
            aws=aws,
            s3=s3,
        )

    def with_overrides(
        self,
        profile: Optional[str] = None,
        bucket: Optional[str] = None,
        source_root: Optional[Path] = None,
        verbose: Optional[bool] = None,
    ) -> "Config":
        """Return a copy with command line overrides applied."""
        config = self
        if profile:
            config = replace(config, aws=replace(config.aws, profile=profile))
        if bucket:
            config = replace(config, s3=replace(config.s3, buckets={bucket: "*"}))
        if source_root is not None:
            config = replace(config, source_root=Path(source_root))
        if verbose is not None:
            config = replace(config, verbose=verbose)
        return config

    def flatten(self) -> Dict[str, Any]:
        """Flat view of the settings, as checked by ``validate_required``."""
        return {
            "url": self.url,
            "region": self.aws.region,
            "endpoint": self.aws.endpoint,
            "profile": self.aws.profile,
            "key": self.aws.access_key_id,
            "secret": self.aws.secret_access_key,
            "buckets": self.s3.buckets,
            "upload_folder": self.s3.upload_folder,
            "acl": self.s3.acl,
            "cloudfront": self.s3.cloudfront.use,
            "cloudfront_url": self.s3.cloudfront.cdn_url,
            "use_path_style_endpoint": self.s3.use_path_style_endpoint,
            "compression": asdict(self.compression),
            "mimetypes": self.mimetypes,
        }

    def validate(self) -> "Config":
        """Fail with ConfigurationError if the configuration cannot drive a push."""
        validate_required(self.flatten(), REQUIRED_FIELDS)

        algorithm = self.compression.algorithm
        if algorithm and algorithm not in SUPPORTED_COMPRESSION:
            raise ConfigurationError(
                f"Unsupported compression algorithm '{algorithm}' "
                f"(expected one of: {', '.join(SUPPORTED_COMPRESSION)})"
            )
        if not 0 <= self.compression.level <= 9:
            raise ConfigurationError(
                f"Compression level must be between 0 and 9, got {self.compression.level}"
            )
        if self.s3.cloudfront.use and not self.s3.cloudfront.cdn_url:
            raise ConfigurationError("CloudFront is enabled but s3.cloudfront.cdn_url is not set")
        if self.chunk_size_mb <= 0:
            raise ConfigurationError(f"chunk_size_mb must be positive, got {self.chunk_size_mb}")
        return self

    def get_aws_session_kwargs(self) -> Dict[str, Any]:
        """Get kwargs for creating the boto3 session."""
        kwargs = {}
        if self.aws.profile:
            kwargs["profile_name"] = self.aws.profile
        if self.aws.region:
            kwargs["region_name"] = self.aws.region
        return kwargs

    def get_s3_client_kwargs(self) -> Dict[str, Any]:
        """Get kwargs for creating the S3 client."""
        kwargs = {}
        if self.aws.region:
            kwargs["region_name"] = self.aws.region
        if self.aws.endpoint:
            kwargs["endpoint_url"] = self.aws.endpoint
        if self.aws.access_key_id and self.aws.secret_access_key:
            kwargs["aws_access_key_id"] = self.aws.access_key_id
            kwargs["aws_secret_access_key"] = self.aws.secret_access_key
        return kwargs


def validate_required(settings: Dict[str, Any], required: Iterable[str]) -> None:
    """
    Check that every required setting is present.

    Raises:
        ConfigurationError: Naming every missing or empty setting
    """
    missing: List[str] = [
        name for name in required if settings.get(name) in (None, "", {}, [], ())
    ]
    if missing:
        raise ConfigurationError(
            f"Missing required configuration: {', '.join(missing)}",
            missing=missing,
        )


def _section(cls, data: Optional[Dict[str, Any]], name: str):
    data = dict(data or {})
    known = set(cls.__dataclass_fields__)
    unknown = set(data) - known
    if unknown:
        raise ConfigurationError(
            f"Unknown keys in '{name}' section: {', '.join(sorted(unknown))}"
        )
    return cls(**data)


def _tuple(values) -> Tuple[str, ...]:
    if not values:
        return ()
    if isinstance(values, str):
        return (values,)
    return tuple(values)
