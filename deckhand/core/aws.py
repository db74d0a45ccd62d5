from typing import Dict, Any, Optional, cast

import boto3


boto3_session: Optional[boto3.session.Session] = None


class AWSSessionBuilder:

    class NoSuchAWSProfile(Exception):
        """
        We raise this if the AWS profile named in the ``aws:`` section of the
        application file does not exist in the user's ``~/.aws/config`` file.
        """
        pass

    class ForbiddenAWSAccountId(Exception):
        pass

    def new(self, aws_config: Dict[str, Any] = None) -> boto3.session.Session:
        """
        Build and return a properly configured boto3 ``Session`` object.

        Args:
            aws_config: the ``aws:`` section of the application file, if any

        Raises:
            AWSSessionBuilder.NoSuchAWSProfile: the requested profile is not in
                ``~/.aws/config``
            AWSSessionBuilder.ForbiddenAWSAccountId: the account id used by our
                profile is not allowed by our ``aws:`` section

        Returns:
            A configured boto3 ``Session`` object.
        """
        aws_config = aws_config if aws_config else {}
        sess = self.__get_boto3_session(config=aws_config)
        if 'allowed_account_ids' in aws_config or 'forbidden_account_ids' in aws_config:
            account_id = sess.client('sts').get_caller_identity().get('Account')
            if 'allowed_account_ids' in aws_config:
                if account_id not in aws_config['allowed_account_ids']:
                    raise self.ForbiddenAWSAccountId(
                        f"Account ID {account_id} is not in the list of allowed_account_ids"
                    )
            if 'forbidden_account_ids' in aws_config:
                if account_id in aws_config['forbidden_account_ids']:
                    raise self.ForbiddenAWSAccountId(
                        f"Account ID {account_id} is in the list of forbidden_account_ids"
                    )
        return sess

    def __get_boto3_session(self, config: Dict[str, Any]) -> boto3.session.Session:
        if 'access_key' in config:
            # An API access key pair in the 'aws' section has priority
            return boto3.session.Session(
                aws_access_key_id=config.get('access_key'),
                aws_secret_access_key=config.get('secret_key'),
                region_name=config.get('region', None)
            )
        if 'profile' in config:
            profile = config['profile']
            if profile not in boto3.session.Session().available_profiles:
                raise self.NoSuchAWSProfile("AWS profile '{}' does not exist in your ~/.aws/config".format(profile))
            return boto3.session.Session(profile_name=profile, region_name=config.get('region', None))
        # Possibly just a region, or nothing at all: leave the rest to the normal
        # AWS credentials resolution
        return boto3.session.Session(region_name=config.get('region', None))


def build_boto3_session(
    aws_config: Dict[str, Any] = None,
    boto3_session_override: boto3.session.Session = None
) -> None:
    """
    Build a boto3 session object from the ``aws:`` section of the application file
    and our environment.  Save it in the global variable :py:data:`boto3_session`
    so we don't have to keep constructing it.

    Args:
        aws_config: the ``aws:`` section of the application file
        boto3_session_override: if not None, use this boto3 session object instead of
            building a new one
    """
    global boto3_session  # pylint: disable=global-statement
    if boto3_session_override:
        boto3_session = boto3_session_override
    else:
        boto3_session = AWSSessionBuilder().new(aws_config)


def get_boto3_session(
    boto3_session_override: boto3.session.Session = None
) -> boto3.session.Session:
    """
    Get the boto3 session object that we've built, or the one that was passed in
    by ``boto3_session_override``.

    Args:
        boto3_session_override: if not None, use this boto3 session object instead of
            the one we built.

    Returns:
        The boto3 session object.
    """
    if boto3_session_override:
        return boto3_session_override
    if boto3_session:
        return boto3_session
    return cast(boto3.session.Session, boto3)
