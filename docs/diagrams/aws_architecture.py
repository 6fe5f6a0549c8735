#!/usr/bin/env python3
"""Generate AWS architecture diagrams for the Next.js site.

This script uses the `diagrams` library to generate architecture diagrams
with official AWS icons. Run this script to regenerate diagrams after
changing the Pulumi components.

Requirements:
    pip install diagrams

Usage:
    python aws_architecture.py

Output:
    - aws_architecture.png: Full system architecture
    - request_routing.png: How CloudFront routes requests to origins
    - revalidation_flow.png: ISR revalidation and warming
"""

import argparse

from diagrams import Cluster, Diagram, Edge
from diagrams.aws.compute import Lambda
from diagrams.aws.database import Dynamodb
from diagrams.aws.integration import SQS, Eventbridge
from diagrams.aws.network import CloudFront
from diagrams.aws.security import WAF
from diagrams.aws.storage import S3
from diagrams.onprem.client import Users

# ============================================================================
# SIZES
# ============================================================================
# Graphviz sizes in inches: (node size, label font, title font)

SIZES = {
    "small": ("1.0", "10", "16"),
    "medium": ("1.5", "12", "20"),
    "large": ("2.0", "14", "24"),
    "xlarge": ("2.5", "16", "28"),
}
DEFAULT_SIZE = "medium"


def get_diagram_attrs(size: str = DEFAULT_SIZE) -> tuple[dict, dict]:
    """Return (graph_attr, node_attr) for a size name."""
    node_size, fontsize, title_fontsize = SIZES.get(size, SIZES[DEFAULT_SIZE])
    graph_attr = {
        "fontsize": title_fontsize,
        "bgcolor": "white",
        "pad": "0.5",
        "splines": "ortho",
    }
    node_attr = {"width": node_size, "height": node_size, "fontsize": fontsize}
    return graph_attr, node_attr


def create_full_architecture(size: str = DEFAULT_SIZE):
    """Create the main AWS architecture diagram."""
    graph_attr, node_attr = get_diagram_attrs(size)
    with Diagram(
        "Next.js on AWS - Architecture",
        filename="aws_architecture",
        show=False,
        direction="TB",
        graph_attr=graph_attr,
        node_attr=node_attr,
    ):
        users = Users("Visitors")

        with Cluster("AWS Cloud"):
            # Edge Layer (WAF is always us-east-1)
            with Cluster("Edge"):
                waf = WAF("WAFv2 WebACL\n(optional)")
                cdn = CloudFront("CloudFront\n+ viewer-request fn")

            # Compute Layer
            with Cluster("Function URLs (AWS_IAM via OAC)"):
                server = Lambda("Default Server")
                image = Lambda("Image Optimizer")
                split = Lambda("Split Servers\n(api, ...)")

            # Storage Layer
            with Cluster("Storage"):
                bucket = S3("Assets + ISR Cache\n(private, OAI)")
                table = Dynamodb("RevalidationTable")

            # Revalidation
            with Cluster("ISR Revalidation"):
                queue = SQS("revalidationQueue\n(FIFO)")
                consumer = Lambda("Revalidation\nConsumer")
                seeder = Lambda("Table Seeder\n(per deploy)")

            # Warming
            with Cluster("Warmer (optional)"):
                schedule = Eventbridge("Schedule")
                warmer = Lambda("Warmer")

        # Connections
        users >> waf >> cdn
        cdn >> bucket
        cdn >> server
        cdn >> image
        cdn >> split

        for fn in (server, split):
            fn >> bucket
            fn >> table
            fn >> queue
        image >> bucket

        queue >> consumer >> server
        seeder >> table

        schedule >> warmer
        warmer >> Edge(style="dashed") >> server
        warmer >> Edge(style="dashed") >> split


def create_request_routing(size: str = DEFAULT_SIZE):
    """Create request routing diagram for the cache behaviors."""
    graph_attr, node_attr = get_diagram_attrs(size)
    with Diagram(
        "Request Routing",
        filename="request_routing",
        show=False,
        direction="LR",
        graph_attr=graph_attr,
        node_attr=node_attr,
    ):
        browser = Users("Browser")

        with Cluster("CloudFront Behaviors"):
            cdn = CloudFront("Distribution")

        with Cluster("Origins"):
            bucket = S3("s3\n(_assets)")
            server = Lambda("default")
            image = Lambda("imageOptimizer")
            api = Lambda("api")

        browser >> cdn
        cdn >> Edge(label="_next/*, BUILD_ID\nstatic policy") >> bucket
        cdn >> Edge(label="_next/image*") >> image
        cdn >> Edge(label="api/*\nall methods, TTL 0") >> api
        cdn >> Edge(label="* (default)\nTTL 60") >> server


def create_revalidation_flow(size: str = DEFAULT_SIZE):
    """Create ISR revalidation and warming diagram."""
    graph_attr, node_attr = get_diagram_attrs(size)
    with Diagram(
        "ISR Revalidation",
        filename="revalidation_flow",
        show=False,
        direction="LR",
        graph_attr=graph_attr,
        node_attr=node_attr,
    ):
        with Cluster("Request Path"):
            server = Lambda("Server Function")
            bucket = S3("_cache")

        with Cluster("Background"):
            queue = SQS("FIFO Queue")
            consumer = Lambda("Consumer")
            table = Dynamodb("Tag Cache")

        server >> Edge(label="1. Serve stale page") >> bucket
        server >> Edge(label="2. Enqueue path") >> queue
        queue >> Edge(label="3. Consume") >> consumer
        consumer >> Edge(label="4. Re-render") >> server
        server >> Edge(label="5. Store fresh page") >> bucket
        server >> Edge(label="6. Update tags", style="dashed") >> table


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Generate AWS architecture diagrams")
    parser.add_argument(
        "--size",
        choices=list(SIZES),
        default=DEFAULT_SIZE,
        help=f"Icon size (default: {DEFAULT_SIZE})",
    )
    args = parser.parse_args()

    print(f"Generating architecture diagrams (size: {args.size})...")
    create_full_architecture(args.size)
    print("✓ aws_architecture.png")
    create_request_routing(args.size)
    print("✓ request_routing.png")
    create_revalidation_flow(args.size)
    print("✓ revalidation_flow.png")
    print("\nDone! Diagrams saved to current directory.")
