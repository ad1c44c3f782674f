"""Static skill dictionary matched (case-insensitively) against job descriptions.

Entries keep their canonical casing; matching is by substring, so very short
names (e.g. "Go", "R") are deliberately absent.
"""

from __future__ import annotations

SKILL_DICTIONARY: tuple[str, ...] = (
    # Languages
    "JavaScript",
    "TypeScript",
    "Python",
    "Java",
    "Kotlin",
    "Swift",
    "Rust",
    "Golang",
    "Scala",
    "Ruby",
    "PHP",
    "C++",
    "C#",
    "SQL",
    "HTML",
    "CSS",
    # Frontend
    "React",
    "Next.js",
    "Vue",
    "Angular",
    "Svelte",
    "Redux",
    "Tailwind",
    # Backend
    "Node.js",
    "Express",
    "NestJS",
    "Django",
    "Flask",
    "FastAPI",
    "Spring Boot",
    "Rails",
    "GraphQL",
    "REST",
    "gRPC",
    "Microservices",
    # Data stores
    "PostgreSQL",
    "MySQL",
    "MongoDB",
    "Redis",
    "Elasticsearch",
    "OpenSearch",
    "DynamoDB",
    "Cassandra",
    "Snowflake",
    # Messaging
    "Kafka",
    "RabbitMQ",
    "SQS",
    # Cloud and infrastructure
    "AWS",
    "Azure",
    "GCP",
    "Docker",
    "Kubernetes",
    "Terraform",
    "Ansible",
    "Lambda",
    "Serverless",
    "Linux",
    # Delivery
    "CI/CD",
    "GitHub Actions",
    "Jenkins",
    "Git",
    # Testing
    "Jest",
    "Cypress",
    "Playwright",
    "Pytest",
    "Selenium",
    # Data and ML
    "Pandas",
    "NumPy",
    "Spark",
    "Airflow",
    "TensorFlow",
    "PyTorch",
    "Machine Learning",
    "LLM",
    # Practices
    "Agile",
    "Scrum",
    "System Design",
    "Distributed Systems",
    "Observability",
)
