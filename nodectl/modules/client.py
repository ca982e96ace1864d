"""Bundle of the executor and control-plane clients used by a run."""
from dataclasses import dataclass

from .executor import Executor
from .keystone import KeystoneClient
from .qbert import QbertClient
from .resmgr import ResmgrClient
from .rest import new_session
from .segment import SegmentClient


@dataclass
class Client:
    executor: Executor
    keystone: KeystoneClient
    resmgr: ResmgrClient
    qbert: QbertClient
    segment: SegmentClient

    @classmethod
    def build(cls, config, executor: Executor) -> 'Client':
        session = new_session(config.allow_insecure)
        resmgr = ResmgrClient(config.fqdn, session=session, timeout=config.api_timeout)
        return cls(
            executor=executor,
            keystone=KeystoneClient(config.fqdn, session=session, timeout=config.api_timeout),
            resmgr=resmgr,
            qbert=QbertClient(config.fqdn, session=session, timeout=config.api_timeout, resmgr=resmgr),
            segment=SegmentClient(config.segment_write_key, fqdn=config.fqdn),
        )

    def close(self) -> None:
        self.segment.close()
        self.executor.close()
