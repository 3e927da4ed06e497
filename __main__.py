import json
import pulumi
import pulumi_aws as aws
from apicloudfront import ApiCloudFrontBuilder, DISTRIBUTION_OUTPUT, load_base_template
from config import load_config

def main():
    # Load YAML configuration
    config_data = load_config("config.yaml")

    try:
        builder = ApiCloudFrontBuilder(config_data)
    except Exception as e:
        pulumi.log.error(f"Failed to initialize ApiCloudFrontBuilder: {e}")
        raise

    # Deployment document the distribution is merged into, e.g. the API's own template
    try:
        base_template = load_base_template(config_data)
        template = builder.build(base_template)
    except Exception as e:
        pulumi.log.error(f"Failed during template build: {e}")
        raise

    stack = aws.cloudformation.Stack(
        builder.generate_resource_name("cdn"),
        template_body=json.dumps(template),
        tags=builder.settings.tags or None,
    )

    try:
        pulumi.export(DISTRIBUTION_OUTPUT, stack.outputs.apply(lambda outputs: (outputs or {}).get(DISTRIBUTION_OUTPUT)))
    except Exception as e:
        pulumi.log.warn(f"Failed to export output '{DISTRIBUTION_OUTPUT}': {e}")

    stack.outputs.apply(builder.print_summary)

if __name__ == "__main__":
    main()
