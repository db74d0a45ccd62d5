from copy import deepcopy
import json
from typing import Any, Dict, Optional, Tuple

from jsondiff import diff

from deckhand.core.aws import get_boto3_session
from deckhand.core.lookup import LookupResult
from deckhand.exceptions import OperationFailed as BaseOperationFailed
from deckhand.registry import importer_registry


class Manager:
    """
    Managers do the talking to AWS for their models.  If ``client`` is given, use it
    instead of building one from our boto3 session; this is how tests hand us a fake
    client.
    """

    service: str

    def __init__(self, client=None):
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = get_boto3_session().client(self.service)
        return self._client

    def get(self, pk: str, **_) -> LookupResult:
        raise NotImplementedError

    def save(self, obj: "Model", **_) -> Any:
        raise NotImplementedError


class Model:

    adapters = importer_registry

    class OperationFailed(BaseOperationFailed):
        """
        We did a call to AWS we expected to succeed, but it failed.
        """
        pass

    @classmethod
    def adapt(cls, obj: Dict[str, Any], source: str, **kwargs) -> Tuple[Dict[str, Any], Dict[str, Any]]:
        """
        Given an appropriate bit of data ``obj`` from a data source ``source``, return the args and kwargs for
        the model constructor: that is, convert ``obj`` to look like the dict AWS returns when we use boto3 to
        describe a single object of this type.
        """
        adapter = cls.adapters.get(cls.__name__, source)(obj, **kwargs)
        return adapter.convert()

    @classmethod
    def new(cls, obj: Dict[str, Any], source: str, **kwargs) -> "Model":
        """
        This is a factory method.

        .. note::

            The ``**kwargs`` here are for the Adapter, not for the Model constructor.
        """
        data, model_kwargs = cls.adapt(obj, source, **kwargs)
        return cls(data, **model_kwargs)

    def __init__(self, data: Dict[str, Any]) -> None:
        self.data = data

    @property
    def pk(self) -> str:
        raise NotImplementedError

    @property
    def name(self) -> str:
        raise NotImplementedError

    @property
    def arn(self) -> Optional[str]:
        raise NotImplementedError

    def render_for_diff(self) -> Dict[str, Any]:
        return self.render()

    def render(self) -> Dict[str, Any]:
        return deepcopy(self.data)

    def diff(self, other: "Model") -> Dict[str, Any]:
        """
        Return what would have to change in ``other`` (usually what is live in AWS) to
        make it look like us, in jsondiff's explicit syntax.
        """
        if self.__class__ != other.__class__:
            raise ValueError(f'{str(other)} is not a {self.__class__.__name__}')
        return json.loads(diff(other.render_for_diff(), self.render_for_diff(), syntax='explicit', dump=True))

    def __str__(self) -> str:
        return '{}(pk="{}")'.format(self.__class__.__name__, self.pk)
