"""Declarative type catalog for the two-tier AWS topology."""

# immutable: changing the value forces a replacement
# sets: list-valued attributes compared without regard to order
# exclusive: referencing a node through this attribute binds it exclusively,
#            so the referenced node is replaced delete-before-create
# computed: outputs the provider returns in addition to the inputs
AWS_RESOURCE_TYPES = {
    "aws_vpc": {
        "id_prefix": "vpc",
        "immutable": ["cidr_block", "instance_tenancy"],
        "computed": ["arn", "default_route_table_id", "main_route_table_id"],
    },
    "aws_internet_gateway": {
        "id_prefix": "igw",
        "computed": ["arn"],
    },
    "aws_subnet": {
        "id_prefix": "subnet",
        "immutable": ["vpc_id", "cidr_block", "availability_zone"],
        "computed": ["arn"],
    },
    "aws_route_table": {
        "id_prefix": "rtb",
        "immutable": ["vpc_id"],
        "computed": ["arn"],
    },
    "aws_route": {
        "id_prefix": "r",
        "immutable": ["route_table_id", "destination_cidr_block"],
    },
    "aws_route_table_association": {
        "id_prefix": "rtbassoc",
        "immutable": ["subnet_id"],
    },
    "aws_security_group": {
        "id_prefix": "sg",
        "immutable": ["name", "vpc_id", "description"],
        "computed": ["arn", "owner_id"],
    },
    "aws_db_subnet_group": {
        "id_prefix": "dbsubnet",
        "immutable": ["name"],
        "sets": ["subnet_ids"],
        "computed": ["arn"],
    },
    "aws_db_instance": {
        "id_prefix": "db",
        "immutable": ["identifier", "engine", "db_name", "username", "db_subnet_group_name", "availability_zone"],
        "sets": ["vpc_security_group_ids"],
        "computed": ["arn", "address", "endpoint", "port"],
    },
    "aws_key_pair": {
        "id_prefix": "key",
        "immutable": ["key_name", "public_key"],
        "computed": ["arn", "fingerprint"],
    },
    "aws_instance": {
        "id_prefix": "i",
        "immutable": ["ami", "subnet_id", "availability_zone", "key_name"],
        "sets": ["vpc_security_group_ids"],
        "computed": ["arn", "private_ip", "public_ip", "public_dns"],
    },
    "aws_eip": {
        "id_prefix": "eipalloc",
        "exclusive": ["instance"],
        "computed": ["public_ip", "public_dns", "allocation_id"],
    },
    "aws_nat_gateway": {
        "id_prefix": "nat",
        "immutable": ["allocation_id", "subnet_id"],
        "computed": ["public_ip"],
    },
}
