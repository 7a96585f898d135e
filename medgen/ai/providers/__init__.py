"""Provider adapters that normalize SDK responses into ProviderCompletion."""
