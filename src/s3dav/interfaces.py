from zope.interface import Interface


class IObjectStore(Interface):
    """Abstraction over a flat key-value object store."""

    def get_object(key):
        """Return a StoredObject for key, or None if not found."""

    def put_object(key, content, content_type):
        """Store content under key, replacing any existing object."""

    def delete_object(key):
        """Delete an object. Deleting a missing key is not an error."""

    def list_objects(prefix):
        """Yield an ObjectSummary for every key starting with prefix."""


class ICacheInvalidator(Interface):
    """Evicts cached HTTP representations by logical URL."""

    def evict(url):
        """Drop the cached representation of url; no-op if absent."""


class IListingCache(ICacheInvalidator):
    """A cache the gateway itself fills with rendered collection listings."""

    def get(url):
        """Return the cached listing body for url, or None."""

    def put(url, body):
        """Cache a rendered listing body under url."""

    def generation(url):
        """Return a token that changes every time url is evicted."""

    def put_if_current(url, generation, body):
        """Cache body unless url was evicted since generation was read."""
