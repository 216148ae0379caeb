"""Push function files to an App Service site through its FTP publishing profile."""

import ftplib
import logging
import os
import posixpath
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import List, Optional
from urllib.parse import urlparse

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PublishingProfile:
    publish_url: str
    user_name: str
    password: str
    passive: bool = True

    @property
    def secure(self) -> bool:
        return urlparse(self.publish_url).scheme.lower() != "ftp"

    @property
    def host(self) -> str:
        return urlparse(self.publish_url).hostname or ""

    @property
    def port(self) -> int:
        return urlparse(self.publish_url).port or 21

    @property
    def root(self) -> str:
        return urlparse(self.publish_url).path or "/site/wwwroot"


def parse_publishing_profile(xml: str, method: str = "FTP") -> PublishingProfile:
    """Return the ``<publishProfile>`` entry whose publishMethod is ``method``."""
    root = ET.fromstring(xml)
    for entry in root.iter("publishProfile"):
        if (entry.get("publishMethod") or "").upper() != method.upper():
            continue
        return PublishingProfile(
            publish_url=entry.get("publishUrl", ""),
            user_name=entry.get("userName", ""),
            password=entry.get("userPWD", ""),
            passive=(entry.get("ftpPassiveMode") or "True").lower() == "true",
        )
    raise ValueError(f"No {method} entry in publishing profile")


def _client(profile: PublishingProfile) -> ftplib.FTP:
    return ftplib.FTP_TLS() if profile.secure else ftplib.FTP()


def _login(ftp: ftplib.FTP, profile: PublishingProfile) -> None:
    ftp.connect(profile.host, profile.port, timeout=60)
    ftp.login(profile.user_name, profile.password)
    if profile.secure:
        ftp.prot_p()
    ftp.set_pasv(profile.passive)


def _ensure_dirs(ftp: ftplib.FTP, path: str) -> None:
    current = ""
    for part in path.strip("/").split("/"):
        if not part:
            continue
        current = f"{current}/{part}"
        try:
            ftp.mkd(current)
            logger.debug("Created remote directory %s", current)
        except ftplib.error_perm as exc:
            # 550: already exists
            if not str(exc).startswith("550"):
                raise


def upload_file(profile: PublishingProfile, local_path: str, remote_path: Optional[str] = None) -> str:
    """Upload one file below the profile's root and return its remote path."""
    remote_path = remote_path or os.path.basename(local_path)
    target = posixpath.join(profile.root, remote_path)
    logger.info("Uploading %s to ftp://%s%s", local_path, profile.host, target)
    with _client(profile) as ftp:
        _login(ftp, profile)
        _ensure_dirs(ftp, posixpath.dirname(target))
        with open(local_path, "rb") as f:
            ftp.storbinary(f"STOR {target}", f)
    return target


def deploy_function_assets(profile: PublishingProfile, asset_dir: str) -> List[str]:
    """Upload ``host.json`` and each function folder of ``asset_dir``."""
    logger.info("Deploying function assets from %s", asset_dir)
    uploaded: List[str] = []
    host_json = os.path.join(asset_dir, "host.json")
    if os.path.isfile(host_json):
        uploaded.append(upload_file(profile, host_json))
    else:
        logger.warning("No host.json in %s", asset_dir)

    for name in sorted(os.listdir(asset_dir)):
        function_dir = os.path.join(asset_dir, name)
        if not os.path.isdir(function_dir):
            continue
        for dirpath, dirnames, filenames in os.walk(function_dir):
            dirnames.sort()
            for filename in sorted(filenames):
                local_path = os.path.join(dirpath, filename)
                remote_path = os.path.relpath(local_path, asset_dir).replace(os.sep, "/")
                uploaded.append(upload_file(profile, local_path, remote_path))
    logger.info("Uploaded %d files", len(uploaded))
    return uploaded
