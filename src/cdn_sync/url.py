"""Public URLs for uploaded assets."""

from urllib.parse import urlsplit

from cdn_sync.config import Config
from cdn_sync.exceptions import ConfigurationError

DEFAULT_PORTS = {"https": 443, "http": 80}


class UrlResolver:
    """Build the public URL of an asset in the bucket or behind the CDN."""

    def __init__(self, config: Config):
        self.config = config

    def resolve(self, relative_path: str) -> str:
        """
        Get the absolute URL for an asset path.

        CloudFront addressing ignores the bucket entirely. Otherwise the
        bucket is a path segment (path-style) or a subdomain of the base
        URL's host (virtual-hosted style).
        """
        path = relative_path.replace("\\", "/").lstrip("/")
        cloudfront = self.config.s3.cloudfront

        if cloudfront.use:
            url = _parse(cloudfront.cdn_url, "s3.cloudfront.cdn_url")
            return f"{url.scheme}://{url.hostname}/{path}"

        url = _parse(self.config.url, "url")
        bucket = self.config.bucket

        if self.config.s3.use_path_style_endpoint:
            bucket = f"{bucket}/" if bucket else ""
            port = ""
            if url.port is not None and url.port != DEFAULT_PORTS.get(url.scheme):
                port = f":{url.port}"
            return f"{url.scheme}://{url.hostname}{port}/{bucket}{path}"

        bucket = f"{bucket}." if bucket else ""
        return f"{url.scheme}://{bucket}{url.hostname}/{path}"


def _parse(url, setting: str):
    parsed = urlsplit(url or "")
    if not parsed.scheme or not parsed.hostname:
        raise ConfigurationError(f"Invalid URL in '{setting}': {url!r}")
    return parsed
