# cost_ledger/demo/seed_demo_data.py

import random
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Dict, List, Optional

from cost_ledger.storage.models import CostRecordInput


@dataclass(frozen=True)
class DemoService:
    name: str
    base_cost: float
    variance: float


DEMO_SERVICES = [
    DemoService("EC2", 0.50, 0.3),
    DemoService("S3", 0.023, 0.1),
    DemoService("Lambda", 0.20, 0.8),
    DemoService("RDS", 0.017, 0.2),
    DemoService("CloudFront", 0.085, 0.4),
    DemoService("DynamoDB", 0.25, 0.5),
    DemoService("ElastiCache", 0.022, 0.3),
    DemoService("API Gateway", 0.09, 0.6),
    DemoService("ECS", 0.044, 0.4),
    DemoService("CloudWatch", 0.30, 0.2),
]

DEMO_REGIONS = ["us-east-1", "us-west-2", "eu-west-1", "ap-southeast-1", "sa-east-1"]

DEMO_ACCOUNTS = ["123456789012", "987654321098", "555555555555"]

USAGE_TYPES: Dict[str, List[str]] = {
    "EC2": ["BoxUsage", "DataTransfer", "EBSOptimization"],
    "S3": ["StorageUsage", "DataTransfer", "Requests"],
    "Lambda": ["Requests", "Duration", "DataTransfer"],
    "RDS": ["InstanceUsage", "StorageUsage", "DataTransfer"],
    "CloudFront": ["DataTransfer", "Requests"],
    "DynamoDB": ["ReadCapacityUnits", "WriteCapacityUnits", "StorageUsage"],
    "ElastiCache": ["NodeUsage", "DataTransfer"],
    "API Gateway": ["Requests", "DataTransfer"],
    "ECS": ["FargateUsage", "DataTransfer"],
    "CloudWatch": ["Metrics", "Logs", "Alarms"],
}


def _demo_cost(service: DemoService, rng: random.Random) -> Decimal:
    random_factor = 0.5 + rng.random()  # 0.5 to 1.5
    variance_factor = 1 + (rng.random() - 0.5) * service.variance
    return Decimal(f"{service.base_cost * random_factor * variance_factor:.4f}")


def generate_demo_records(
    count: int = 50,
    days: int = 30,
    end_date: Optional[date] = None,
    rng: Optional[random.Random] = None,
) -> List[CostRecordInput]:
    """Generate realistic demo cost records.

    Walks the days from ``end_date - days`` forward, emitting one or two
    records per service per day until ``count`` records exist.

    Args:
        count: Number of records to generate
        days: How many days back the first record is dated
        end_date: Last possible record date (defaults to today)
        rng: Random source, for reproducible data

    Returns:
        List of at most ``count`` records
    """
    rng = rng or random.Random()
    end_date = end_date or date.today()
    start_date = end_date - timedelta(days=days)

    records: List[CostRecordInput] = []
    day = start_date
    while day <= end_date and len(records) < count:
        for service in DEMO_SERVICES:
            for _ in range(rng.randint(1, 2)):
                if len(records) >= count:
                    break
                region = rng.choice(DEMO_REGIONS)
                usage_type = rng.choice(USAGE_TYPES.get(service.name, ["Usage"]))
                records.append(CostRecordInput(
                    date=day,
                    service_name=service.name,
                    cost_amount=_demo_cost(service, rng),
                    region=region,
                    account_id=rng.choice(DEMO_ACCOUNTS),
                    resource_id=f"{service.name.lower().replace(' ', '-')}-{rng.getrandbits(32):08x}",
                    usage_type=usage_type,
                    description=f"{service.name} {usage_type} usage in {region}",
                ))
        day += timedelta(days=1)

    return records
