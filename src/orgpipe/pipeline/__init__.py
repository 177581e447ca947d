"""Pipeline stages and orchestration — provider → secrets → orgs → fetch → files.

The pipeline coordinates the entire data flow:
1. Load the provider record
2. Resolve its secret
3. Extract one work item per org
4. Fetch each org's data from the external API (bounded fan-out)
5. Write JSON and flattened CSV objects for the whole batch

Components:
- Orchestrator: Local executor for the state machine shape
- definition: Step Functions definition of the same shape
- ProviderSource, Decryptor, EntityExtractor, EntityFetcher, ResultWriter
"""

from orgpipe.pipeline.decryptor import Decryptor
from orgpipe.pipeline.definition import RetryPolicy, build_definition
from orgpipe.pipeline.extractor import EntityExtractor
from orgpipe.pipeline.fetcher import EntityFetcher
from orgpipe.pipeline.orchestrator import Orchestrator, RunResult
from orgpipe.pipeline.provider import ProviderSource
from orgpipe.pipeline.writer import ResultWriter, WriteSummary

__all__ = [
    "Decryptor",
    "EntityExtractor",
    "EntityFetcher",
    "Orchestrator",
    "ProviderSource",
    "ResultWriter",
    "RetryPolicy",
    "RunResult",
    "WriteSummary",
    "build_definition",
]
