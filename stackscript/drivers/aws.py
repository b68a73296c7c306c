"""
AWS drivers, backed by boto3.

Each supported ``(entity, action)`` pair is described declaratively in ``AWS_DRIVERS``: the boto3 service and
function to call, how the template parameters map onto the request, and how the resulting identifier is extracted
from the response. ``AwsDriver`` turns such a description into a callable driver, in a real and a dry run flavor.
"""
import logging
import threading
from typing import Any, Callable, Dict, Optional

from boto3.session import Session
from botocore.client import BaseClient
from botocore.config import Config
from botocore.exceptions import ClientError

from stackscript import config as stackscript_config
from stackscript.constants import DRY_RUN_OPERATION_CODE, NOT_FOUND_CODE_SUFFIX
from stackscript.drivers.params import convert_param, get_param
from stackscript.drivers.registry import DriverRegistry
from stackscript.template.errors import DriverError
from stackscript.template.models import Action, Entity
from stackscript.utils.strings import short_uid

LOG = logging.getLogger(__name__)

# services supporting the `DryRun` flag on their API calls
DRY_RUN_SERVICES = {"ec2"}

# prefixes of the placeholder identifiers returned by dry runs, following the AWS id formats
PLACEHOLDER_PREFIXES = {
    Entity.VPC: "vpc",
    Entity.SUBNET: "subnet",
    Entity.INSTANCE: "i",
    Entity.VOLUME: "vol",
    Entity.INTERNETGATEWAY: "igw",
    Entity.ROUTETABLE: "rtb",
    Entity.SECURITYGROUP: "sg",
    Entity.KEYPAIR: "key",
}


class AwsClientFactory:
    """Creates and caches the boto3 clients used by the drivers."""

    def __init__(
        self,
        region_name: str = None,
        endpoint_url: str = None,
        session: Session = None,
        config: Config = None,
    ):
        self.region_name = region_name or stackscript_config.AWS_REGION
        self.endpoint_url = endpoint_url or stackscript_config.AWS_ENDPOINT_URL
        self._session = session or Session()
        self._config = config or Config()
        self._clients: Dict[str, BaseClient] = {}
        self._create_client_lock = threading.RLock()

    def get_client(self, service_name: str) -> BaseClient:
        with self._create_client_lock:
            client = self._clients.get(service_name)
            if client is None:
                LOG.debug(
                    "Creating %s client for region %s (endpoint: %s)",
                    service_name,
                    self.region_name,
                    self.endpoint_url or "default",
                )
                client = self._session.client(
                    service_name=service_name,
                    region_name=self.region_name,
                    endpoint_url=self.endpoint_url,
                    config=self._config,
                )
                self._clients[service_name] = client
            return client


def placeholder_id(entity: Entity) -> str:
    """Returns a syntactically valid, made up identifier for a resource created in a dry run."""
    return f"{PLACEHOLDER_PREFIXES.get(entity, entity.value)}-{short_uid()}"


def is_dry_run_success(error: ClientError) -> bool:
    """
    Whether the error returned by a call with ``DryRun=True`` means the call would have succeeded. References to
    resources created earlier in the same dry run point to placeholders, so "not found" errors count as success.
    """
    code = error.response.get("Error", {}).get("Code", "")
    return code == DRY_RUN_OPERATION_CODE or code.endswith(NOT_FOUND_CODE_SUFFIX)


# -----------------------
# PARAMETER CONVERSIONS
# -----------------------


def _tags(params: Dict[str, Any], client: BaseClient):
    return [
        {
            "Key": convert_param("key", params.get("key"), "str"),
            "Value": convert_param("value", params.get("value"), "str"),
        }
    ]


def _bucket_configuration(params: Dict[str, Any], client: BaseClient):
    region = client.meta.region_name
    if not region or region == "us-east-1":
        return None
    return {"LocationConstraint": region}


QUEUE_ATTRIBUTES = {
    "delay": "DelaySeconds",
    "maxMsgSize": "MaximumMessageSize",
    "retentionPeriod": "MessageRetentionPeriod",
    "policy": "Policy",
    "msgWait": "ReceiveMessageWaitTimeSeconds",
    "redrivePolicy": "RedrivePolicy",
    "visibilityTimeout": "VisibilityTimeout",
}


def _queue_attributes(params: Dict[str, Any], client: BaseClient):
    attributes = {
        attribute: convert_param(name, params[name], "str")
        for name, attribute in QUEUE_ATTRIBUTES.items()
        if params.get(name) is not None
    }
    return attributes or None


def _route_table_association(params: Dict[str, Any], client: BaseClient) -> str:
    association = get_param(params, "association", "str")
    if association:
        return association

    table_id = convert_param("id", params.get("id"), "str")
    subnet_id = convert_param("subnet", params.get("subnet"), "str")
    tables = client.describe_route_tables(RouteTableIds=[table_id])["RouteTables"]
    for table in tables:
        for association in table.get("Associations", []):
            if association.get("SubnetId") == subnet_id:
                return association["RouteTableAssociationId"]
    raise DriverError(f"route table {table_id} is not associated with subnet {subnet_id}")


# maps entities and actions to the boto3 calls performing them
AWS_DRIVERS = {
    Entity.VPC: {
        Action.CREATE: {
            "service": "ec2",
            "function": "create_vpc",
            "parameters": {"CidrBlock": ("cidr", "str")},
            "result": lambda response, params: response["Vpc"]["VpcId"],
        },
        Action.DELETE: {
            "service": "ec2",
            "function": "delete_vpc",
            "parameters": {"VpcId": ("id", "str")},
        },
    },
    Entity.SUBNET: {
        Action.CREATE: {
            "service": "ec2",
            "function": "create_subnet",
            "parameters": {"CidrBlock": ("cidr", "str"), "VpcId": ("vpc", "str")},
            "extra_parameters": {"AvailabilityZone": ("zone", "str")},
            "result": lambda response, params: response["Subnet"]["SubnetId"],
        },
        Action.DELETE: {
            "service": "ec2",
            "function": "delete_subnet",
            "parameters": {"SubnetId": ("id", "str")},
        },
    },
    Entity.INSTANCE: {
        Action.CREATE: {
            "service": "ec2",
            "function": "run_instances",
            "parameters": {
                "ImageId": ("image", "str"),
                "InstanceType": ("type", "str"),
                "SubnetId": ("subnet", "str"),
            },
            "extra_parameters": {
                "MinCount": ("count", "int"),
                "MaxCount": ("count", "int"),
                "KeyName": ("key", "str"),
                "PrivateIpAddress": ("ip", "str"),
                "UserData": ("userdata", "str"),
                "SecurityGroupIds": ("group", "list"),
            },
            "defaults": {"MinCount": 1, "MaxCount": 1},
            "result": lambda response, params: response["Instances"][0]["InstanceId"],
        },
        Action.DELETE: {
            "service": "ec2",
            "function": "terminate_instances",
            "parameters": {"InstanceIds": ("id", "list")},
        },
        Action.START: {
            "service": "ec2",
            "function": "start_instances",
            "parameters": {"InstanceIds": ("id", "list")},
        },
        Action.STOP: {
            "service": "ec2",
            "function": "stop_instances",
            "parameters": {"InstanceIds": ("id", "list")},
        },
    },
    Entity.VOLUME: {
        Action.CREATE: {
            "service": "ec2",
            "function": "create_volume",
            "parameters": {"AvailabilityZone": ("zone", "str"), "Size": ("size", "int")},
            "result": lambda response, params: response["VolumeId"],
        },
        Action.DELETE: {
            "service": "ec2",
            "function": "delete_volume",
            "parameters": {"VolumeId": ("id", "str")},
        },
        Action.ATTACH: {
            "service": "ec2",
            "function": "attach_volume",
            "parameters": {
                "Device": ("device", "str"),
                "VolumeId": ("id", "str"),
                "InstanceId": ("instance", "str"),
            },
        },
        Action.DETACH: {
            "service": "ec2",
            "function": "detach_volume",
            "parameters": {"VolumeId": ("id", "str")},
            "extra_parameters": {"Device": ("device", "str"), "InstanceId": ("instance", "str")},
        },
    },
    Entity.INTERNETGATEWAY: {
        Action.CREATE: {
            "service": "ec2",
            "function": "create_internet_gateway",
            "parameters": {},
            "result": lambda response, params: response["InternetGateway"]["InternetGatewayId"],
        },
        Action.DELETE: {
            "service": "ec2",
            "function": "delete_internet_gateway",
            "parameters": {"InternetGatewayId": ("id", "str")},
        },
        Action.ATTACH: {
            "service": "ec2",
            "function": "attach_internet_gateway",
            "parameters": {"InternetGatewayId": ("id", "str"), "VpcId": ("vpc", "str")},
        },
        Action.DETACH: {
            "service": "ec2",
            "function": "detach_internet_gateway",
            "parameters": {"InternetGatewayId": ("id", "str"), "VpcId": ("vpc", "str")},
        },
    },
    Entity.ROUTETABLE: {
        Action.CREATE: {
            "service": "ec2",
            "function": "create_route_table",
            "parameters": {"VpcId": ("vpc", "str")},
            "result": lambda response, params: response["RouteTable"]["RouteTableId"],
        },
        Action.DELETE: {
            "service": "ec2",
            "function": "delete_route_table",
            "parameters": {"RouteTableId": ("id", "str")},
        },
        Action.ATTACH: {
            "service": "ec2",
            "function": "associate_route_table",
            "parameters": {"RouteTableId": ("id", "str"), "SubnetId": ("subnet", "str")},
            "result": lambda response, params: response["AssociationId"],
        },
        Action.DETACH: {
            "service": "ec2",
            "function": "disassociate_route_table",
            # either the association itself, or the table and subnet it associates
            "parameters": {"AssociationId": _route_table_association},
            "accepts": ("association", "id", "subnet"),
        },
    },
    Entity.ROUTE: {
        Action.CREATE: {
            "service": "ec2",
            "function": "create_route",
            "parameters": {
                "RouteTableId": ("table", "str"),
                "DestinationCidrBlock": ("cidr", "str"),
                "GatewayId": ("gateway", "str"),
            },
        },
        Action.DELETE: {
            "service": "ec2",
            "function": "delete_route",
            "parameters": {
                "RouteTableId": ("table", "str"),
                "DestinationCidrBlock": ("cidr", "str"),
            },
        },
    },
    Entity.SECURITYGROUP: {
        Action.CREATE: {
            "service": "ec2",
            "function": "create_security_group",
            "parameters": {
                "GroupName": ("name", "str"),
                "VpcId": ("vpc", "str"),
                "Description": ("description", "str"),
            },
            "result": lambda response, params: response["GroupId"],
        },
        Action.DELETE: {
            "service": "ec2",
            "function": "delete_security_group",
            "parameters": {"GroupId": ("id", "str")},
        },
    },
    Entity.TAG: {
        Action.CREATE: {
            "service": "ec2",
            "function": "create_tags",
            "parameters": {"Resources": ("resource", "list"), "Tags": _tags},
            "accepts": ("key", "value"),
        },
        Action.DELETE: {
            "service": "ec2",
            "function": "delete_tags",
            "parameters": {"Resources": ("resource", "list"), "Tags": _tags},
            "accepts": ("key", "value"),
        },
    },
    Entity.KEYPAIR: {
        Action.DELETE: {
            "service": "ec2",
            "function": "delete_key_pair",
            "parameters": {"KeyName": ("id", "str")},
        },
    },
    Entity.BUCKET: {
        Action.CREATE: {
            "service": "s3",
            "function": "create_bucket",
            "parameters": {"Bucket": ("name", "str")},
            "extra_parameters": {"CreateBucketConfiguration": _bucket_configuration},
            "result": lambda response, params: params["name"],
        },
        Action.DELETE: {
            "service": "s3",
            "function": "delete_bucket",
            "parameters": {"Bucket": ("id", "str")},
        },
    },
    Entity.TOPIC: {
        Action.CREATE: {
            "service": "sns",
            "function": "create_topic",
            "parameters": {"Name": ("name", "str")},
            "result": lambda response, params: response["TopicArn"],
        },
        Action.DELETE: {
            "service": "sns",
            "function": "delete_topic",
            "parameters": {"TopicArn": ("id", "str")},
        },
    },
    Entity.QUEUE: {
        Action.CREATE: {
            "service": "sqs",
            "function": "create_queue",
            "parameters": {"QueueName": ("name", "str")},
            "extra_parameters": {"Attributes": _queue_attributes},
            "accepts": tuple(QUEUE_ATTRIBUTES),
            "result": lambda response, params: response["QueueUrl"],
        },
        Action.DELETE: {
            "service": "sqs",
            "function": "delete_queue",
            "parameters": {"QueueUrl": ("id", "str")},
        },
    },
    Entity.USER: {
        Action.CREATE: {
            "service": "iam",
            "function": "create_user",
            "parameters": {"UserName": ("name", "str")},
            "result": lambda response, params: response["User"]["UserName"],
        },
        Action.DELETE: {
            "service": "iam",
            "function": "delete_user",
            "parameters": {"UserName": ("id", "str")},
        },
    },
    Entity.GROUP: {
        Action.CREATE: {
            "service": "iam",
            "function": "create_group",
            "parameters": {"GroupName": ("name", "str")},
            "result": lambda response, params: response["Group"]["GroupName"],
        },
        Action.DELETE: {
            "service": "iam",
            "function": "delete_group",
            "parameters": {"GroupName": ("id", "str")},
        },
    },
}


class AwsDriver:
    """Performs a single entity action described in ``AWS_DRIVERS``, for real or as a dry run."""

    def __init__(
        self,
        entity: Entity,
        action: Action,
        details: Dict[str, Any],
        client_factory: AwsClientFactory,
        dry_run: bool = False,
    ):
        self.entity = entity
        self.action = action
        self.details = details
        self.client_factory = client_factory
        self.dry_run = dry_run

    @property
    def service(self) -> str:
        return self.details["service"]

    def known_params(self):
        names = set(self.details.get("accepts", ()))
        for key in ("parameters", "extra_parameters"):
            for mapping in self.details.get(key, {}).values():
                if isinstance(mapping, tuple):
                    names.add(mapping[0])
        return names

    def build_request(self, params: Dict[str, Any], client: BaseClient) -> Dict[str, Any]:
        """
        Maps the template parameters onto the keyword arguments of the boto3 call.

        :raises ParamTypeError: if a parameter is missing or has the wrong type
        """
        request = {}
        for boto_key, mapping in self.details.get("parameters", {}).items():
            request[boto_key] = self._param_value(mapping, params, client, required=True)
        for boto_key, mapping in self.details.get("extra_parameters", {}).items():
            value = self._param_value(mapping, params, client, required=False)
            if value is not None:
                request[boto_key] = value
        for boto_key, value in self.details.get("defaults", {}).items():
            request.setdefault(boto_key, value)

        unknown = set(params) - self.known_params()
        if unknown:
            LOG.debug(
                "Ignoring unknown parameters for '%s %s': %s",
                self.action,
                self.entity,
                sorted(unknown),
            )
        return request

    @staticmethod
    def _param_value(mapping, params: Dict[str, Any], client: BaseClient, required: bool):
        if callable(mapping):
            return mapping(params, client)
        name, kind = mapping
        if required:
            return convert_param(name, params.get(name), kind)
        return get_param(params, name, kind)

    def __call__(self, params: Dict[str, Any]) -> Any:
        client = self.client_factory.get_client(self.service)
        if self.dry_run:
            return self._dry_run(client, params)

        request = self.build_request(params, client)
        function: Callable = getattr(client, self.details["function"])
        LOG.debug("Request for '%s %s': %s", self.action, self.entity, request)
        try:
            response = function(**request)
        except ClientError as e:
            LOG.debug("Error calling %s with params %s: %s", self.details["function"], request, e)
            raise

        result = self._extract_result(response, params)
        LOG.debug("%s %s '%s' done", self.action, self.entity, result or "")
        return result

    def _dry_run(self, client: BaseClient, params: Dict[str, Any]) -> Optional[str]:
        if self.service not in DRY_RUN_SERVICES:
            # parameter validation is all we can do without side effects
            self.build_request(params, client)
            LOG.debug("params dry run: %s %s ok", self.action, self.entity)
            return self._placeholder()

        try:
            request = self.build_request(params, client)
            getattr(client, self.details["function"])(DryRun=True, **request)
        except ClientError as e:
            if not is_dry_run_success(e):
                LOG.debug("dry run: %s %s error: %s", self.action, self.entity, e)
                raise
        LOG.debug("full dry run: %s %s ok", self.action, self.entity)
        return self._placeholder()

    def _placeholder(self) -> Optional[str]:
        if "result" not in self.details:
            return None
        return placeholder_id(self.entity)

    def _extract_result(self, response: Dict[str, Any], params: Dict[str, Any]) -> Any:
        extractor = self.details.get("result")
        if not extractor:
            return None
        try:
            return extractor(response, params)
        except (KeyError, IndexError, TypeError) as e:
            raise DriverError(
                f"unexpected response of {self.service}.{self.details['function']}: missing {e}"
            ) from e


def register_aws_drivers(
    registry: DriverRegistry, client_factory: AwsClientFactory = None
) -> DriverRegistry:
    """Registers the real and dry run drivers of all entity actions in ``AWS_DRIVERS``."""
    client_factory = client_factory or AwsClientFactory()
    for entity, actions in AWS_DRIVERS.items():
        for action, details in actions.items():
            for dry_run in (False, True):
                driver = AwsDriver(entity, action, details, client_factory, dry_run=dry_run)
                registry.register(entity, action, driver, dry_run=dry_run)
    return registry
