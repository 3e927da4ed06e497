import copy
import os
import pulumi
import yaml
from functools import reduce
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from config import Config, ConfigResolver

RESOURCES_FILE = os.path.join(os.path.dirname(os.path.abspath(__file__)), "resources.yml")
DISTRIBUTION_RESOURCE = "ApiDistribution"
API_RESOURCE = "ApiGatewayRestApi"
DISTRIBUTION_OUTPUT = "ApiDistribution"
COMMENT_PREFIX = "Pulumi Managed"
CACHED_METHODS = ["HEAD", "GET", "OPTIONS"]

AWS_REGION_ABBREVIATIONS = {
    "us-east-1": "use1",
    "us-east-2": "use2",
    "us-west-1": "usw1",
    "us-west-2": "usw2",
    "af-south-1": "afs1",
    "ap-east-1": "ape1",
    "ap-south-1": "aps1",
    "ap-northeast-1": "apne1",
    "ap-northeast-2": "apne2",
    "ap-northeast-3": "apne3",
    "ap-southeast-1": "apse1",
    "ap-southeast-2": "apse2",
    "ca-central-1": "cac1",
    "eu-central-1": "euc1",
    "eu-west-1": "euw1",
    "eu-west-2": "euw2",
    "eu-west-3": "euw3",
    "eu-north-1": "eun1",
    "eu-south-1": "eus1",
    "me-south-1": "mes1",
    "sa-east-1": "sae1",
    "us-gov-east-1": "usge1",
    "us-gov-west-1": "usgw1",
    "cn-north-1": "cnn1",
    "cn-northwest-1": "cnnw1",
}

Step = Callable[[Dict[str, Any], ConfigResolver], Dict[str, Any]]


def get_abbreviation(region: str) -> str:
    return AWS_REGION_ABBREVIATIONS.get(region.lower(), region.split("-")[0].lower())


def generate_resource_name(config_data: Dict[str, Any], base_name: str) -> str:
    team = config_data.get("team", "team").strip().lower()
    service = config_data.get("service", "svc").strip().lower()
    env = config_data.get("environment", "dev").strip().lower()
    reg_abbr = get_abbreviation(config_data.get("region", "us-east-1"))
    return f"{team}-{service}-{env}-{reg_abbr}-{base_name}".lower()


def api_gateway_name(config_data: Dict[str, Any]) -> str:
    return generate_resource_name(config_data, "api")


def stage_name(config_data: Dict[str, Any]) -> str:
    return config_data.get("stage") or config_data.get("environment", "dev")


def as_list(value: Any) -> List[Any]:
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def _forwarded_values(distribution_config: Dict[str, Any]) -> Dict[str, Any]:
    return distribution_config["DefaultCacheBehavior"]["ForwardedValues"]


# Each prepare_* step receives its own copy of the DistributionConfig,
# edits it and hands it back. Keys they drop may not be read by later steps.

def prepare_logging(distribution_config: Dict[str, Any], resolver: ConfigResolver) -> Dict[str, Any]:
    bucket = resolver.resolve("logging.bucket")
    if bucket is not None:
        distribution_config["Logging"]["Bucket"] = bucket
        distribution_config["Logging"]["Prefix"] = resolver.resolve("logging.prefix", "")
    else:
        distribution_config.pop("Logging", None)
    return distribution_config


def prepare_domain(distribution_config: Dict[str, Any], resolver: ConfigResolver) -> Dict[str, Any]:
    domain = resolver.resolve("domain")
    if domain is not None:
        distribution_config["Aliases"] = as_list(domain)
    else:
        distribution_config.pop("Aliases", None)
    return distribution_config


def prepare_price_class(distribution_config: Dict[str, Any], resolver: ConfigResolver) -> Dict[str, Any]:
    distribution_config["PriceClass"] = resolver.resolve("priceClass", "PriceClass_All")
    return distribution_config


def prepare_origins(distribution_config: Dict[str, Any], resolver: ConfigResolver) -> Dict[str, Any]:
    origin = distribution_config["Origins"][0]

    protocol_policy = resolver.resolve("originProtocolPolicy")
    if protocol_policy is not None:
        origin["CustomOriginConfig"]["OriginProtocolPolicy"] = protocol_policy

    domain_name = resolver.resolve("originDomainName")
    if domain_name is not None:
        origin["DomainName"] = domain_name

    # An explicit "" keeps the origin at its root, an explicit null drops the key.
    origin_path = resolver.resolve("originPath", f"/{stage_name(resolver.config)}", allow_empty=True)
    if origin_path is not None:
        origin["OriginPath"] = origin_path
    else:
        origin.pop("OriginPath", None)
    return distribution_config


def prepare_cookies(distribution_config: Dict[str, Any], resolver: ConfigResolver) -> Dict[str, Any]:
    cookies = resolver.resolve("cookies", "all")
    forwarded = _forwarded_values(distribution_config)
    if isinstance(cookies, (list, tuple)):
        forwarded["Cookies"]["Forward"] = "whitelist"
        forwarded["Cookies"]["WhitelistedNames"] = list(cookies)
    else:
        forwarded["Cookies"]["Forward"] = cookies
    return distribution_config


def prepare_headers(distribution_config: Dict[str, Any], resolver: ConfigResolver) -> Dict[str, Any]:
    headers = resolver.resolve("headers", "none")
    forwarded = _forwarded_values(distribution_config)
    if isinstance(headers, (list, tuple)):
        forwarded["Headers"] = list(headers)
    else:
        forwarded["Headers"] = [] if headers == "none" else ["*"]
    return distribution_config


def prepare_query_string(distribution_config: Dict[str, Any], resolver: ConfigResolver) -> Dict[str, Any]:
    query_string = resolver.resolve("querystring", "all")
    forwarded = _forwarded_values(distribution_config)
    if isinstance(query_string, (list, tuple)):
        forwarded["QueryString"] = True
        forwarded["QueryStringCacheKeys"] = list(query_string)
    else:
        forwarded["QueryString"] = query_string == "all"
    return distribution_config


def prepare_comment(distribution_config: Dict[str, Any], resolver: ConfigResolver) -> Dict[str, Any]:
    distribution_config["Comment"] = f"{COMMENT_PREFIX} {api_gateway_name(resolver.config)}"
    return distribution_config


def prepare_certificate(distribution_config: Dict[str, Any], resolver: ConfigResolver) -> Dict[str, Any]:
    certificate = resolver.resolve("certificate")
    if certificate is not None:
        distribution_config["ViewerCertificate"]["AcmCertificateArn"] = certificate
    else:
        distribution_config.pop("ViewerCertificate", None)
    return distribution_config


def prepare_waf(distribution_config: Dict[str, Any], resolver: ConfigResolver) -> Dict[str, Any]:
    waf = resolver.resolve("waf")
    if waf is not None:
        distribution_config["WebACLId"] = waf
    else:
        distribution_config.pop("WebACLId", None)
    return distribution_config


def prepare_compress(distribution_config: Dict[str, Any], resolver: ConfigResolver) -> Dict[str, Any]:
    distribution_config["DefaultCacheBehavior"]["Compress"] = resolver.resolve("compress", False) is True
    return distribution_config


def prepare_cached_methods(distribution_config: Dict[str, Any], resolver: ConfigResolver) -> Dict[str, Any]:
    distribution_config["DefaultCacheBehavior"]["CachedMethods"] = list(CACHED_METHODS)
    return distribution_config


def prepare_ttls(distribution_config: Dict[str, Any], resolver: ConfigResolver) -> Dict[str, Any]:
    behavior = distribution_config["DefaultCacheBehavior"]
    for key in ("MinTTL", "MaxTTL", "DefaultTTL"):
        behavior[key] = resolver.resolve(key, 0)
    return distribution_config


def prepare_root_object(distribution_config: Dict[str, Any], resolver: ConfigResolver) -> Dict[str, Any]:
    root_object = resolver.resolve("defaultRootObject", "")
    if root_object:
        distribution_config["DefaultRootObject"] = root_object
    return distribution_config


def prepare_custom_error_responses(distribution_config: Dict[str, Any], resolver: ConfigResolver) -> Dict[str, Any]:
    responses = resolver.resolve("customErrorResponses")
    if responses is not None:
        distribution_config["CustomErrorResponses"] = as_list(responses)
    else:
        distribution_config.pop("CustomErrorResponses", None)
    return distribution_config


def prepare_cache_behaviors(distribution_config: Dict[str, Any], resolver: ConfigResolver) -> Dict[str, Any]:
    behaviors = resolver.resolve("cacheBehaviors")
    if behaviors is not None:
        distribution_config["CacheBehaviors"] = as_list(behaviors)
    else:
        distribution_config.pop("CacheBehaviors", None)
    return distribution_config


PREPARE_STEPS: List[Step] = [
    prepare_logging,
    prepare_domain,
    prepare_price_class,
    prepare_origins,
    prepare_cookies,
    prepare_headers,
    prepare_query_string,
    prepare_comment,
    prepare_certificate,
    prepare_waf,
    prepare_compress,
    prepare_cached_methods,
    prepare_ttls,
    prepare_root_object,
    prepare_custom_error_responses,
    prepare_cache_behaviors,
]


def prepare_distribution_config(
    distribution_config: Dict[str, Any],
    resolver: ConfigResolver,
    steps: Iterable[Step] = PREPARE_STEPS,
) -> Dict[str, Any]:
    """Fold the steps over a DistributionConfig. The argument is left untouched."""
    def apply(current: Dict[str, Any], step: Step) -> Dict[str, Any]:
        pulumi.log.debug(f"Applying {step.__name__}")
        return step(copy.deepcopy(current), resolver)

    return reduce(apply, steps, distribution_config)


def prepare_resources(resources: Dict[str, Any], resolver: ConfigResolver) -> Dict[str, Any]:
    prepared = copy.deepcopy(resources)
    properties = prepared["Resources"][DISTRIBUTION_RESOURCE]["Properties"]
    properties["DistributionConfig"] = prepare_distribution_config(properties["DistributionConfig"], resolver)
    return prepared


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Merge ``override`` into a copy of ``base``; mappings recurse, anything else is replaced."""
    result = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(result.get(key), dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = copy.deepcopy(value)
    return result


def load_template(file_path: str) -> Dict[str, Any]:
    with open(file_path, "r") as file:
        template = yaml.safe_load(file)
    if template is None:
        return {}
    if not isinstance(template, dict):
        raise ValueError(f"Template '{file_path}' must contain a mapping, got {type(template).__name__}")
    return template


def load_resources(file_path: str = RESOURCES_FILE) -> Dict[str, Any]:
    resources = load_template(file_path)
    if DISTRIBUTION_RESOURCE not in resources.get("Resources", {}):
        raise ValueError(f"Resource '{DISTRIBUTION_RESOURCE}' not found in '{file_path}'.")
    return resources


def load_base_template(config_data: Dict[str, Any]) -> Dict[str, Any]:
    """Load the deployment document named by ``template``; it must define the API the origin points at."""
    template_path = config_data.get("template")
    if not template_path:
        raise ValueError("Missing required configuration key: template")
    base_template = load_template(template_path)
    if API_RESOURCE not in base_template.get("Resources", {}):
        raise ValueError(f"Resource '{API_RESOURCE}' not found in '{template_path}'.")
    return base_template


def find_output(outputs: Any, key: str = DISTRIBUTION_OUTPUT) -> Optional[Any]:
    """Look ``key`` up in a plain output mapping or a list of OutputKey/OutputValue records."""
    if not outputs:
        return None
    if isinstance(outputs, Mapping):
        return outputs.get(key)
    for output in outputs:
        if isinstance(output, Mapping) and output.get("OutputKey") == key:
            return output.get("OutputValue")
    return None


def summary_lines(outputs: Any, cname: Any = "-") -> List[str]:
    domain_name = find_output(outputs)
    if not domain_name:
        return []
    if isinstance(cname, (list, tuple)):
        cname = ", ".join(str(name) for name in cname)
    return ["CloudFront domain name", f"  {domain_name} (CNAME: {cname})"]


class ApiCloudFrontBuilder:
    def __init__(self, config_data: dict, resources_file: str = RESOURCES_FILE):
        self.config = config_data
        self.settings = Config.from_dict(config_data)
        self.resolver = ConfigResolver(config_data)
        self.resources_file = resources_file
        self.template: Dict[str, Any] = {}

    def generate_resource_name(self, base_name: str) -> str:
        return generate_resource_name(self.config, base_name)

    def build(self, base_template: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        resources = load_resources(self.resources_file)
        pulumi.log.info(f"Loaded distribution template from '{self.resources_file}'")

        prepared = prepare_resources(resources, self.resolver)
        distribution_config = prepared["Resources"][DISTRIBUTION_RESOURCE]["Properties"]["DistributionConfig"]
        for block in ("Logging", "Aliases", "ViewerCertificate", "WebACLId", "CustomErrorResponses", "CacheBehaviors"):
            if block not in distribution_config:
                pulumi.log.debug(f"'{block}' not configured, removed from '{DISTRIBUTION_RESOURCE}'")

        self.template = deep_merge(base_template or {}, prepared)
        pulumi.log.info(f"Prepared '{DISTRIBUTION_RESOURCE}' for stage '{stage_name(self.config)}'")
        return self.template

    def print_summary(self, outputs: Any) -> List[str]:
        lines = summary_lines(outputs, self.resolver.resolve("domain", "-"))
        for line in lines:
            pulumi.log.info(line)
        return lines
