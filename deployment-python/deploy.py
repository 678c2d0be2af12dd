"""
==============================================================
 S3 Static Website Bucket & CloudFront Provisioning Script
==============================================================

Project Explanation:
--------------------
Before a static website can go online, somewhere has to exist for its files to
live and something has to deliver them quickly to visitors. This script sets
up both of those things on Amazon Web Services (AWS), in one go, and leaves the
actual website files for a separate upload step (for example a CI pipeline).

What gets created?
------------------
1. An S3 'bucket' (an online folder) in a fixed AWS Region.
2. The bucket's "Block Public Access" switches are turned off, because a
   website has to be readable by anyone.
3. A bucket 'policy' (a JSON rule document) that lets anyone *read* objects.
4. Static website hosting on the bucket (`index.html` and `error.html`).
5. A CloudFront 'distribution' (the CDN) that uses the bucket as its origin,
   redirects `http://` to `https://`, and caches pages for up to a day.
6. A placeholder `index.html` in the current directory, so there is something
   to upload straight away.
7. A summary with the distribution ID and the CloudFront domain name.

How are failures handled?
-------------------------
Every step returns a `StepResult` instead of raising. The sequencer stops at
the first FATAL result. Two things are *not* fatal:
- the bucket already exists and you own it (the step is SKIPPED);
- the final domain-name lookup fails (a placeholder text is printed instead).
Nothing that was created before a failure is rolled back.

Requirements:
-------------
- Python 3 installed.
- `boto3` library installed (`pip install boto3`).
- AWS Command Line Interface (CLI) installed and configured with your AWS credentials
  (run `aws configure` in your terminal). You need permissions to manage S3, CloudFront
  and to call `sts:GetCallerIdentity`.
"""

import enum
import json
import logging
import os
import sys
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import boto3
from botocore.exceptions import ClientError

logger = logging.getLogger(__name__)

# --- Constants ---

# Bucket names are global across all of AWS. Change this before running.
BUCKET_NAME: str = "static-site-origin-bucket"
# AWS Region where the S3 bucket will be created.
REGION: str = "us-east-1"
INDEX_DOCUMENT: str = "index.html"
ERROR_DOCUMENT: str = "error.html"

# CloudFront cache behaviour, in seconds.
MIN_TTL: int = 0
DEFAULT_TTL: int = 3600  # 1 hour
MAX_TTL: int = 86400  # 24 hours
# North America and Europe edge locations only.
PRICE_CLASS: str = "PriceClass_100"

# Set this to an existing OAI id (e.g. E2QWRUHEXAMPLE) to use one.
OAI_ENV_VAR: str = "SITE_ORIGIN_ACCESS_IDENTITY"
OAI_PREFIX: str = "origin-access-identity/cloudfront/"

DEFAULT_INDEX_HTML: str = (
    "<!DOCTYPE html><html><head><title>Hello from S3!</title></head>"
    "<body><h1>Hello from S3!</h1>"
    "<p>This is a default page. Upload your website files to the S3 bucket.</p>"
    "</body></html>"
)

DOMAIN_LOOKUP_FAILED: str = "Could not retrieve the domain name"

# One-line messages printed when the run stops, keyed by error category.
FAILURE_MESSAGES: Dict[str, str] = {
    "s3": "Error during S3 operations: {message}",
    "cloudfront": "Error during CloudFront operations: {message}",
    "general": "An error occurred: {message}",
}


# --- Settings & step results ---


@dataclass(frozen=True)
class DeploymentSettings:
    """Everything the provisioning steps need to know about the target site."""

    bucket_name: str = BUCKET_NAME
    region: str = REGION
    index_document: str = INDEX_DOCUMENT
    error_document: str = ERROR_DOCUMENT
    origin_access_identity: str = ""
    price_class: str = PRICE_CLASS

    @classmethod
    def from_environment(cls, environ: Optional[Dict[str, str]] = None) -> "DeploymentSettings":
        """
        Builds settings from the constants above plus the OAI environment variable.

        Only the origin-access identity comes from the environment; the bucket
        name and region stay fixed so every step agrees on them.
        """
        environ = os.environ if environ is None else environ
        return cls(origin_access_identity=normalize_origin_access_identity(environ.get(OAI_ENV_VAR, "")))

    @property
    def origin_id(self) -> str:
        return f"S3-{self.bucket_name}"

    @property
    def origin_domain(self) -> str:
        """Regional REST endpoint of the bucket (not the website endpoint)."""
        return f"{self.bucket_name}.s3.{self.region}.amazonaws.com"

    @property
    def website_endpoint(self) -> str:
        return f"http://{self.bucket_name}.s3-website-{self.region}.amazonaws.com"


def normalize_origin_access_identity(value: str) -> str:
    """Turns a bare OAI id into the path CloudFront expects. Empty means no OAI."""
    value = value.strip()
    if not value or value.startswith(OAI_PREFIX):
        return value
    return f"{OAI_PREFIX}{value}"


class StepStatus(enum.Enum):
    SUCCESS = "success"
    # Nothing to do, carry on with the next step.
    SKIPPED = "skipped"
    FATAL = "fatal"


@dataclass(frozen=True)
class StepResult:
    """Outcome of one provisioning step."""

    step: str
    status: StepStatus
    message: str = ""
    category: Optional[str] = None
    value: Optional[str] = None

    @property
    def is_fatal(self) -> bool:
        return self.status is StepStatus.FATAL

    @classmethod
    def ok(cls, step: str, message: str = "", value: Optional[str] = None) -> "StepResult":
        return cls(step=step, status=StepStatus.SUCCESS, message=message, value=value)

    @classmethod
    def skipped(cls, step: str, message: str) -> "StepResult":
        return cls(step=step, status=StepStatus.SKIPPED, message=message)

    @classmethod
    def fatal(cls, step: str, category: str, message: str) -> "StepResult":
        return cls(step=step, status=StepStatus.FATAL, message=message, category=category)


def _error_code(error: ClientError) -> Optional[str]:
    return error.response.get("Error", {}).get("Code")


def _error_message(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Message") or str(error)


# --- Documents ---


def build_bucket_policy(bucket_name: str) -> Dict[str, Any]:
    """
    Returns the policy document that grants public read access to every object.

    Simple Explanation:
    "Allow anyone ('Principal': '*') to read ('s3:GetObject') any file
    ('arn:aws:s3:::bucket_name/*') in this bucket." That is what lets a
    browser (or CloudFront) fetch the website files.
    """
    return {
        "Version": "2012-10-17",
        "Statement": [
            {
                "Sid": "PublicReadGetObject",
                "Effect": "Allow",
                "Principal": "*",
                "Action": "s3:GetObject",
                "Resource": f"arn:aws:s3:::{bucket_name}/*",
            }
        ],
    }


def build_distribution_config(settings: DeploymentSettings, caller_reference: str) -> Dict[str, Any]:
    """
    Returns the `DistributionConfig` for `create_distribution`.

    Simple Explanation:
    This tells CloudFront:
    1. Where the files live (the bucket's S3 endpoint, the 'Origin').
    2. That the main page is `index.html` ('DefaultRootObject').
    3. To turn `http://` into `https://` ('ViewerProtocolPolicy').
    4. To keep cached copies between 0 seconds and 1 day, 1 hour by default.
    5. To ignore query strings and cookies, since a static site has no use for them.
    It uses CloudFront's own certificate (`*.cloudfront.net`), so no custom domain.

    Args:
        settings (DeploymentSettings): Bucket, region and OAI to point at.
        caller_reference (str): Unique token so AWS doesn't create the distribution twice.

    Returns:
        Dict[str, Any]: The distribution configuration.
    """
    return {
        "CallerReference": caller_reference,
        "Comment": f"CloudFront distribution for {settings.bucket_name}",
        "Enabled": True,
        "DefaultRootObject": settings.index_document,
        "Origins": {
            "Quantity": 1,
            "Items": [
                {
                    "Id": settings.origin_id,
                    "DomainName": settings.origin_domain,
                    "S3OriginConfig": {
                        "OriginAccessIdentity": settings.origin_access_identity,
                    },
                }
            ],
        },
        "DefaultCacheBehavior": {
            "TargetOriginId": settings.origin_id,
            "ViewerProtocolPolicy": "redirect-to-https",
            "AllowedMethods": {
                "Quantity": 2,
                "Items": ["GET", "HEAD"],
                "CachedMethods": {"Quantity": 2, "Items": ["GET", "HEAD"]},
            },
            "MinTTL": MIN_TTL,
            "DefaultTTL": DEFAULT_TTL,
            "MaxTTL": MAX_TTL,
            "ForwardedValues": {
                "QueryString": False,
                "Cookies": {"Forward": "none"},
            },
            "TrustedSigners": {"Enabled": False, "Quantity": 0},
        },
        "PriceClass": settings.price_class,
        "ViewerCertificate": {"CloudFrontDefaultCertificate": True},
    }


# --- Steps ---


def create_bucket(s3_client: Any, settings: DeploymentSettings) -> StepResult:
    """
    Creates the S3 bucket in the configured region.

    Simple Explanation:
    This makes the online folder where the website will live. If you already
    own a bucket with this name we simply move on. If the region is not valid
    for buckets, nothing else can work, so the run stops here.

    Args:
        s3_client: A boto3 S3 client.
        settings (DeploymentSettings): Bucket name and region.

    Returns:
        StepResult: SUCCESS, SKIPPED (already yours) or FATAL.
    """
    step = "create_bucket"
    bucket_name = settings.bucket_name
    try:
        # 'us-east-1' is the default location and rejects an explicit LocationConstraint
        if settings.region == "us-east-1":
            s3_client.create_bucket(Bucket=bucket_name)
        else:
            s3_client.create_bucket(
                Bucket=bucket_name,
                CreateBucketConfiguration={"LocationConstraint": settings.region},
            )
    except ClientError as e:
        error_code = _error_code(e)
        if error_code == "BucketAlreadyOwnedByYou":
            logger.warning(f"Bucket '{bucket_name}' already exists and is owned by you. Skipping creation.")
            return StepResult.skipped(step, f"Bucket '{bucket_name}' already exists.")
        if error_code == "InvalidLocationConstraint":
            logger.error(
                f"Region '{settings.region}' is not valid or does not support buckets. Check REGION. Error: {e}"
            )
            return StepResult.fatal(step, "s3", _error_message(e))
        logger.error(f"Failed to create bucket '{bucket_name}'. Error: {e}")
        return StepResult.fatal(step, "s3", _error_message(e))

    logger.info(f"Successfully created S3 bucket: {bucket_name} in region {settings.region}")
    return StepResult.ok(step, f"Bucket '{bucket_name}' created.")


def disable_block_public_access(s3_client: Any, settings: DeploymentSettings) -> StepResult:
    """
    Turns off all four Block Public Access switches for the bucket.

    This doesn't make anything public by itself; it only allows the public-read
    policy applied in the next step to take effect.
    """
    step = "disable_block_public_access"
    try:
        s3_client.put_public_access_block(
            Bucket=settings.bucket_name,
            PublicAccessBlockConfiguration={
                "BlockPublicAcls": False,
                "IgnorePublicAcls": False,
                "BlockPublicPolicy": False,
                "RestrictPublicBuckets": False,
            },
        )
    except ClientError as e:
        logger.error(f"Failed to disable Block Public Access for bucket '{settings.bucket_name}'. Error: {e}")
        return StepResult.fatal(step, "s3", _error_message(e))

    logger.info(f"Successfully disabled Block Public Access settings for bucket: {settings.bucket_name}")
    return StepResult.ok(step, f"Block Public Access disabled for bucket '{settings.bucket_name}'.")


def set_bucket_policy(s3_client: Any, settings: DeploymentSettings) -> StepResult:
    """Replaces the bucket policy with the public-read one."""
    step = "set_bucket_policy"
    policy_string: str = json.dumps(build_bucket_policy(settings.bucket_name))
    try:
        s3_client.put_bucket_policy(Bucket=settings.bucket_name, Policy=policy_string)
    except ClientError as e:
        logger.error(f"Failed to set bucket policy for '{settings.bucket_name}'. Error: {e}")
        return StepResult.fatal(step, "s3", _error_message(e))

    logger.info(f"Successfully applied public read policy to bucket: {settings.bucket_name}")
    return StepResult.ok(step, f"Public read policy set for bucket '{settings.bucket_name}'.")


def configure_website(s3_client: Any, settings: DeploymentSettings) -> StepResult:
    """Turns on static website hosting with the index and error documents."""
    step = "configure_website"
    try:
        s3_client.put_bucket_website(
            Bucket=settings.bucket_name,
            WebsiteConfiguration={
                "IndexDocument": {"Suffix": settings.index_document},
                "ErrorDocument": {"Key": settings.error_document},
            },
        )
    except ClientError as e:
        logger.error(f"Failed to configure website hosting for bucket '{settings.bucket_name}'. Error: {e}")
        return StepResult.fatal(step, "s3", _error_message(e))

    logger.info(f"Successfully configured bucket '{settings.bucket_name}' for static website hosting.")
    return StepResult.ok(step, f"Static website hosting enabled for bucket '{settings.bucket_name}'.")


def create_cloudfront_distribution(
    cloudfront_client: Any, sts_client: Any, settings: DeploymentSettings
) -> StepResult:
    """
    Creates the CloudFront distribution in front of the bucket.

    Simple Explanation:
    First we ask AWS "who am I?" (the account ID, only written to the log so
    you can tell which account got the distribution). Then we hand CloudFront
    the configuration from `build_distribution_config`. CloudFront answers
    immediately with an ID, but the distribution keeps deploying in the
    background for a while.

    Args:
        cloudfront_client: A boto3 CloudFront client.
        sts_client: A boto3 STS client.
        settings (DeploymentSettings): The target site.

    Returns:
        StepResult: SUCCESS with the distribution ID as `value`, or FATAL.
    """
    step = "create_cloudfront_distribution"
    try:
        account_id: str = sts_client.get_caller_identity()["Account"]
    except ClientError as e:
        logger.error(f"Failed to resolve the caller identity. Error: {e}")
        return StepResult.fatal(step, "general", _error_message(e))
    logger.info(f"Creating CloudFront distribution for bucket '{settings.bucket_name}' in account {account_id}")

    if not settings.origin_access_identity:
        logger.info("No origin access identity configured; CloudFront will read the bucket anonymously.")

    # Unique reference for this creation request
    caller_reference: str = str(uuid.uuid4())
    try:
        response = cloudfront_client.create_distribution(
            DistributionConfig=build_distribution_config(settings, caller_reference)
        )
    except ClientError as e:
        logger.error(f"Failed to create CloudFront distribution. Error: {e}")
        return StepResult.fatal(step, "cloudfront", _error_message(e))

    distribution_id: str = response["Distribution"]["Id"]
    logger.info(f"CloudFront distribution creation initiated. Distribution ID: {distribution_id}")
    return StepResult.ok(
        step, f"CloudFront distribution creation initiated. Distribution ID: {distribution_id}", value=distribution_id
    )


def write_default_index(path: str = INDEX_DOCUMENT) -> StepResult:
    """Writes the placeholder home page, replacing whatever is at `path`."""
    step = "write_default_index"
    try:
        with open(path, "w", encoding="utf-8", newline="") as f:
            f.write(DEFAULT_INDEX_HTML)
    except OSError as e:
        logger.error(f"Failed to write '{path}'. Error: {e}")
        return StepResult.fatal(step, "general", str(e))

    logger.info(f"Default index page written to {os.path.abspath(path)}")
    return StepResult.ok(step, f"Default index file written to '{path}'.", value=path)


def get_distribution_domain(cloudfront_client: Any, distribution_id: str) -> str:
    """
    Looks up the domain name CloudFront assigned to the distribution.

    This is informational only: on failure it logs and returns
    `DOMAIN_LOOKUP_FAILED` instead of stopping the run.
    """
    try:
        response = cloudfront_client.get_distribution(Id=distribution_id)
        return response["Distribution"]["DomainName"]
    except Exception as e:
        # Informational only; no failure here may stop the run.
        logger.error(f"Failed to get the domain name of CloudFront distribution {distribution_id}. Error: {e}")
        return DOMAIN_LOOKUP_FAILED


# --- Sequencer ---


def _run_step(step: str, func: Callable[..., StepResult], *args: Any) -> StepResult:
    try:
        return func(*args)
    except Exception as e:
        # Anything the step didn't anticipate (network, credentials, local I/O).
        logger.exception(f"Unexpected error in step '{step}'")
        return StepResult.fatal(step, "general", str(e))


def _report_failure(result: StepResult, out: Callable[[str], None]) -> int:
    template = FAILURE_MESSAGES.get(result.category or "general", FAILURE_MESSAGES["general"])
    out(template.format(message=result.message))
    logger.error(f"Step '{result.step}' failed. Provisioning stopped; resources created so far were left in place.")
    return 1


def run_deployment(
    s3_client: Any,
    cloudfront_client: Any,
    sts_client: Any,
    settings: Optional[DeploymentSettings] = None,
    index_path: Optional[str] = None,
    out: Callable[[str], None] = print,
) -> int:
    """
    Runs every provisioning step in order and returns a process exit code.

    Simple Explanation:
    This is the conductor. It runs the steps one after another:
    1. Create the bucket (`create_bucket`).
    2. Allow public access settings (`disable_block_public_access`).
    3. Set the public read rule (`set_bucket_policy`).
    4. Turn on website hosting (`configure_website`).
    5. Create the CloudFront distribution (`create_cloudfront_distribution`).
    6. Write a placeholder `index.html` (`write_default_index`).
    7. Print what was created.
    8. Ask CloudFront for the site's domain name (`get_distribution_domain`).
    The first step that fails stops everything after it.

    The clients are passed in rather than created here, so any object with
    the same methods (a fake, a client for another profile) works.

    Args:
        s3_client: A boto3 S3 client.
        cloudfront_client: A boto3 CloudFront client.
        sts_client: A boto3 STS client.
        settings (Optional[DeploymentSettings]): Defaults to `DeploymentSettings.from_environment()`.
        index_path (Optional[str]): Where to write the placeholder page. Defaults to `index.html`.
        out (Callable[[str], None]): Where status and summary lines go. Defaults to `print`.

    Returns:
        int: 0 when every step completed, 1 when a step failed.
    """
    if settings is None:
        settings = DeploymentSettings.from_environment()
    if index_path is None:
        index_path = settings.index_document

    s3_steps = [
        ("create_bucket", create_bucket),
        ("disable_block_public_access", disable_block_public_access),
        ("set_bucket_policy", set_bucket_policy),
        ("configure_website", configure_website),
    ]
    for name, func in s3_steps:
        result = _run_step(name, func, s3_client, settings)
        if result.is_fatal:
            return _report_failure(result, out)
        out(result.message)

    result = _run_step(
        "create_cloudfront_distribution",
        create_cloudfront_distribution,
        cloudfront_client,
        sts_client,
        settings,
    )
    if result.is_fatal:
        return _report_failure(result, out)
    distribution_id: str = result.value or ""
    out(result.message)
    out("Wait for the distribution to deploy (this can take up to 20 minutes) before visiting your site.")

    result = _run_step("write_default_index", write_default_index, index_path)
    if result.is_fatal:
        return _report_failure(result, out)
    out(result.message)

    domain_name = get_distribution_domain(cloudfront_client, distribution_id)

    # --- Deployment Summary ---
    out("=" * 60)
    out(f" S3 Bucket Name:        {settings.bucket_name}")
    out(f" AWS Region:            {settings.region}")
    out(f" S3 Website Endpoint:   {settings.website_endpoint}")
    out(f" CloudFront ID:         {distribution_id}")
    out(f" Default index file:    {index_path} (upload your site files to the bucket)")
    out(f" Your site will be available at: https://{domain_name}")
    out("=" * 60)
    logger.info("Provisioning finished.")
    return 0


def main() -> int:
    """Configures logging, creates the boto3 clients and runs the deployment."""
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
    logger.info("=================================================")
    logger.info(" Provisioning S3 bucket & CloudFront distribution ")
    logger.info("=================================================")

    settings = DeploymentSettings.from_environment()
    # Credentials come from the default AWS CLI profile / environment.
    s3_client = boto3.client("s3", region_name=settings.region)
    cloudfront_client = boto3.client("cloudfront", region_name=settings.region)
    sts_client = boto3.client("sts", region_name=settings.region)
    return run_deployment(s3_client, cloudfront_client, sts_client, settings=settings)


def cli() -> None:
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("Aborted by user. Exiting.")
        sys.exit(130)


# --- Script Entry Point ---

if __name__ == "__main__":
    cli()
